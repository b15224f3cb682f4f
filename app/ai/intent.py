"""Turn classification and model tier selection, kept free of I/O so the heuristic can be tuned in isolation."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

from app.api.models.schemas import HistoryMessage

GREETING_SENTINEL = "HELLO_DAISY"
PLAN_NOW_SENTINEL = "PLAN_NOW"
PLANNING_KEYWORDS = ("계획", "추천", "코스", "짜줘", "루트")


class Intent(str, Enum):
    GREETING = "greeting"
    PLANNING = "planning"
    CHAT = "chat"


class ModelTier(str, Enum):
    PLANNING = "planning"
    CHAT = "chat"


def classify_intent(message: str) -> Intent:
    if message == GREETING_SENTINEL:
        return Intent.GREETING
    if message == PLAN_NOW_SENTINEL or any(keyword in message for keyword in PLANNING_KEYWORDS):
        return Intent.PLANNING
    return Intent.CHAT


def select_model_tier(message: str, history: Optional[Sequence[HistoryMessage]] = None) -> ModelTier:
    """Planning turns get the stronger model; everything else the cheaper one."""
    return ModelTier.PLANNING if classify_intent(message) is Intent.PLANNING else ModelTier.CHAT
