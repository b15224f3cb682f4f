from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

TransportMode = Literal["car", "public", "walk"]
StepCategory = Literal["Meal", "Cafe", "Activity", "Accommodation"]

_CATEGORY_LOOKUP = {value.casefold(): value for value in ("Meal", "Cafe", "Activity", "Accommodation")}

# ---------- Place ----------


class LatLng(BaseModel):
    lat: float
    lng: float


class Place(BaseModel):
    placeId: str
    title: str
    address: str = ""
    location: LatLng
    rating: Optional[float] = None
    userRatingCount: Optional[int] = None
    category: Optional[str] = None
    photoUrl: Optional[str] = None
    openNow: Optional[bool] = None
    openingHours: Optional[List[str]] = None
    priceLevel: Optional[str] = None
    website: Optional[str] = None

    def to_prompt_dict(self) -> dict[str, Any]:
        """Compact view for prompting; photo URLs are reduced to an availability flag."""
        return {
            "id": self.placeId,
            "title": self.title,
            "category": self.category,
            "rating": self.rating,
            "count": self.userRatingCount,
            "address": self.address,
            "location": {"lat": self.location.lat, "lng": self.location.lng},
            "openNow": self.openNow,
            "openingHours": self.openingHours or "Unknown",
            "photo": "Available" if self.photoUrl else "None",
        }


# ---------- Course ----------


class PlaceDetail(BaseModel):
    imageUrl: Optional[str] = None
    rating: Optional[float] = None
    reviewCount: Optional[int] = None
    priceRange: Optional[str] = None
    reviews: Optional[List[str]] = None
    openingHours: Optional[str] = None
    bookingUrl: Optional[str] = None
    googlePlaceId: Optional[str] = None
    # Accommodation only
    checkIn: Optional[str] = None
    checkOut: Optional[str] = None
    amenities: Optional[List[str]] = None


class CourseStep(BaseModel):
    placeName: str
    category: StepCategory
    description: str = ""
    duration: str = ""
    location: LatLng
    distanceFromPrev: Optional[str] = None
    timeFromPrev: Optional[str] = None
    pathToNext: Optional[List[LatLng]] = None
    detail: Optional[PlaceDetail] = None

    @field_validator("description", "duration", mode="before")
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _CATEGORY_LOOKUP.get(value.strip().casefold(), value)
        return value


class CoursePlan(BaseModel):
    id: str
    title: str
    description: str = ""
    totalDuration: str = ""
    transportation: TransportMode = "public"
    steps: List[CourseStep] = Field(default_factory=list)
    totalDistance: Optional[str] = None
    parkingInfo: Optional[str] = None

    @field_validator("description", "totalDuration", mode="before")
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("transportation", mode="before")
    @classmethod
    def _null_transportation(cls, value: Any) -> Any:
        return "public" if value is None else value

    @field_validator("steps", mode="before")
    @classmethod
    def _null_steps(cls, value: Any) -> Any:
        return [] if value is None else value


class CourseResponse(BaseModel):
    conversationResponse: str
    plans: List[CoursePlan] = Field(default_factory=list)
    suggestedReplies: List[str] = Field(default_factory=list)

    # Models emit null for "nothing to show"; treat it like an omitted field.
    @field_validator("plans", "suggestedReplies", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value


# ---------- Chat ----------


class HistoryMessage(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    message: str
    history: List[HistoryMessage] = Field(default_factory=list)
    systemContext: str = ""
    transportMode: TransportMode = "public"


# ---------- Session / context ----------


class SessionInfo(BaseModel):
    sessionId: str
    createdAt: datetime
    expiresAt: datetime
    lastActive: datetime


class ContextSaveRequest(BaseModel):
    context: Optional[Any] = None
    history: Optional[List[HistoryMessage]] = None
    suggestions: Optional[List[str]] = None
    plans: Optional[List[CoursePlan]] = None
    selectedPlanId: Optional[str] = None


class ContextHistoryResponse(BaseModel):
    history: List[HistoryMessage] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    plans: List[CoursePlan] = Field(default_factory=list)
    selectedPlanId: Optional[str] = None


class CacheStats(BaseModel):
    places: int
    courses: int
    routes: int
    total: int
