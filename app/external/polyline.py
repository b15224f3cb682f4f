from typing import List

from app.api.models.schemas import LatLng


def decode_polyline(encoded: str, precision: int = 5) -> List[LatLng]:
    """Decode a Google encoded polyline into an ordered list of coordinates."""
    factor = 10**precision
    points: List[LatLng] = []
    index = lat = lng = 0
    length = len(encoded)

    while index < length:
        deltas = []
        for _ in range(2):
            shift = result = 0
            while True:
                b = ord(encoded[index]) - 63
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)
        lat += deltas[0]
        lng += deltas[1]
        points.append(LatLng(lat=lat / factor, lng=lng / factor))
    return points
