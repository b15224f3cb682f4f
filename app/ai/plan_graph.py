from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Sequence, TypedDict

from langgraph.graph import END, StateGraph

from app.ai.intent import Intent, ModelTier, classify_intent, select_model_tier
from app.ai.openai_client import CompletionModel
from app.ai.parsing import extract_json_object, parse_query_list
from app.ai.prompts import (
    APOLOGY_TEXT,
    GREETING_REPLIES,
    GREETING_TEXT,
    RETRY_REPLIES,
    SEARCH_FAILED_CONTEXT,
    build_plan_prompt,
    build_query_prompt,
    build_search_context,
)
from app.api.models.schemas import CoursePlan, CourseResponse, HistoryMessage, Place
from app.domain.repositories import PlaceRepository
from app.domain.services.itinerary_enricher import ItineraryEnricher

logger = logging.getLogger(__name__)

MAIN_CATEGORIES = {"Meal", "Cafe", "Activity"}


class PlaceSearcher(Protocol):
    async def search(self, query: str, limit: int = 3) -> List[Place]: ...


class PlanState(TypedDict):
    message: str
    history: List[HistoryMessage]
    system_context: str
    transport_mode: str
    intent: Intent
    queries: List[str]
    search_context: str
    candidates: List[Place]
    response: Optional[CourseResponse]


def greeting_response() -> CourseResponse:
    return CourseResponse(conversationResponse=GREETING_TEXT, plans=[], suggestedReplies=list(GREETING_REPLIES))


def degraded_response() -> CourseResponse:
    return CourseResponse(conversationResponse=APOLOGY_TEXT, plans=[], suggestedReplies=list(RETRY_REPLIES))


def find_overlapping_places(plans: Sequence[CoursePlan]) -> Dict[str, List[str]]:
    """
    Main-step places (meal/cafe/activity) used by more than one plan, keyed by place id
    (or name when the step has no id), mapped to the ids of the plans that use them.
    """
    usage: Dict[str, List[str]] = {}
    for plan in plans:
        seen_in_plan = set()
        for step in plan.steps:
            if step.category not in MAIN_CATEGORIES:
                continue
            key = (step.detail.googlePlaceId if step.detail else None) or step.placeName
            if key in seen_in_plan:
                continue
            seen_in_plan.add(key)
            usage.setdefault(key, []).append(plan.id)
    return {key: plan_ids for key, plan_ids in usage.items() if len(plan_ids) > 1}


class PlanGenerator:
    """
    Date-course generation pipeline as a LangGraph state machine:

        classify -> greet                                     (greeting sentinel)
        classify -> synthesize [-> enrich]                    (chat turn)
        classify -> derive_queries -> gather_candidates -> synthesize [-> enrich]   (planning turn)

    Provider, store and query-derivation failures only thin out the candidate data.
    The one hard failure, unusable model output in synthesize, becomes a fixed apology response.
    """

    def __init__(
        self,
        llm: CompletionModel,
        places: PlaceSearcher,
        place_repo: PlaceRepository,
        enricher: ItineraryEnricher,
        *,
        planning_model: str,
        chat_model: str,
        results_per_query: int = 3,
        nearby_radius_meters: int = 2000,
        nearby_limit: int = 50,
        search_timeout: float = 15.0,
        llm_timeout: float = 60.0,
    ):
        self.llm = llm
        self.places = places
        self.place_repo = place_repo
        self.enricher = enricher
        self.planning_model = planning_model
        self.chat_model = chat_model
        self.results_per_query = results_per_query
        self.nearby_radius_meters = nearby_radius_meters
        self.nearby_limit = nearby_limit
        self.search_timeout = search_timeout
        self.llm_timeout = llm_timeout
        self._graph = self._build_graph()

    def _build_graph(self):
        builder = StateGraph(PlanState)
        builder.add_node("classify", self.classify)
        builder.add_node("greet", self.greet)
        builder.add_node("derive_queries", self.derive_queries)
        builder.add_node("gather_candidates", self.gather_candidates)
        builder.add_node("synthesize", self.synthesize)
        builder.add_node("enrich", self.enrich)

        builder.set_entry_point("classify")
        builder.add_conditional_edges(
            "classify",
            self._after_classify,
            {"greet": "greet", "derive_queries": "derive_queries", "synthesize": "synthesize"},
        )
        builder.add_edge("greet", END)
        builder.add_edge("derive_queries", "gather_candidates")
        builder.add_edge("gather_candidates", "synthesize")
        builder.add_conditional_edges("synthesize", self._after_synthesize, {"enrich": "enrich", "end": END})
        builder.add_edge("enrich", END)
        return builder.compile()

    async def generate(
        self,
        message: str,
        history: Optional[List[HistoryMessage]] = None,
        system_context: str = "",
        transport_mode: str = "public",
    ) -> CourseResponse:
        state = await self.run(message, history, system_context, transport_mode)
        return state["response"] or degraded_response()

    async def run(
        self,
        message: str,
        history: Optional[List[HistoryMessage]] = None,
        system_context: str = "",
        transport_mode: str = "public",
    ) -> PlanState:
        initial_state: PlanState = {
            "message": message,
            "history": list(history or []),
            "system_context": system_context or "",
            "transport_mode": transport_mode,
            "intent": Intent.CHAT,
            "queries": [],
            "search_context": "",
            "candidates": [],
            "response": None,
        }
        try:
            return await self._graph.ainvoke(initial_state)
        except Exception as exc:
            logger.exception("Plan graph failed: %s", exc)
            return {**initial_state, "response": degraded_response()}

    # ---------- nodes ----------

    async def classify(self, state: PlanState) -> Dict:
        intent = classify_intent(state["message"])
        if state["system_context"]:
            logger.debug("System context provided: %s", state["system_context"])
        return {"intent": intent}

    async def greet(self, state: PlanState) -> Dict:
        return {"response": greeting_response()}

    async def derive_queries(self, state: PlanState) -> Dict:
        logger.info("Planning request detected; generating search queries")
        prompt = build_query_prompt(state["message"], state["history"], state["system_context"])
        try:
            text = await self._complete(prompt, self.planning_model)
            queries = parse_query_list(text)
        except Exception as exc:
            logger.warning("Search query generation failed: %s", exc)
            return {"queries": [], "search_context": SEARCH_FAILED_CONTEXT}
        logger.info("Search queries generated: %s", queries)
        return {"queries": queries}

    async def gather_candidates(self, state: PlanState) -> Dict:
        queries = state["queries"]
        if not queries:
            return {"candidates": [], "search_context": SEARCH_FAILED_CONTEXT}

        batches = await asyncio.gather(*(self._search(query) for query in queries))
        flattened = [place for batch in batches for place in batch]

        unique: Dict[str, Place] = {}
        for place in flattened:
            unique[place.placeId] = place

        logger.info("Persisting %s places to the place store", len(unique))
        for place in unique.values():
            try:
                await self.place_repo.upsert(place)
            except Exception as exc:
                logger.warning("Failed to persist place %s: %s", place.title, exc)

        if not flattened:
            return {"candidates": [], "search_context": SEARCH_FAILED_CONTEXT}

        anchor = flattened[0]
        try:
            nearby = await self.place_repo.find_nearby(
                anchor.location.lat, anchor.location.lng, self.nearby_radius_meters, self.nearby_limit
            )
        except Exception as exc:
            logger.warning("Nearby place lookup failed: %s", exc)
            nearby = []
        logger.info("Found %s stored places near %s", len(nearby), anchor.title)
        for place in nearby:
            # Live search results win on id collisions.
            if place.placeId not in unique:
                unique[place.placeId] = place

        candidates = list(unique.values())
        return {"candidates": candidates, "search_context": build_search_context(candidates)}

    async def synthesize(self, state: PlanState) -> Dict:
        is_planning = state["intent"] is Intent.PLANNING
        tier = select_model_tier(state["message"], state["history"])
        model = self.planning_model if tier is ModelTier.PLANNING else self.chat_model
        logger.info("Using model %s (intent=%s)", model, state["intent"].value)
        prompt = build_plan_prompt(
            state["message"],
            state["history"],
            state["system_context"],
            state["transport_mode"],
            is_planning,
            state["search_context"],
        )
        try:
            text = await self._complete(prompt, model)
            response = CourseResponse.model_validate(extract_json_object(text))
        except Exception as exc:
            logger.warning("Plan synthesis failed: %s", exc)
            return {"response": degraded_response()}

        overlaps = find_overlapping_places(response.plans)
        if overlaps:
            logger.warning("Generated plans share main places: %s", overlaps)
        return {"response": response}

    async def enrich(self, state: PlanState) -> Dict:
        response = state["response"]
        await self.enricher.enrich(response.plans, state["candidates"])
        return {"response": response}

    # ---------- routing ----------

    def _after_classify(self, state: PlanState) -> str:
        if state["intent"] is Intent.GREETING:
            return "greet"
        if state["intent"] is Intent.PLANNING:
            return "derive_queries"
        return "synthesize"

    def _after_synthesize(self, state: PlanState) -> str:
        response = state["response"]
        return "enrich" if response is not None and response.plans else "end"

    # ---------- helpers ----------

    async def _complete(self, prompt: str, model: str) -> str:
        return await asyncio.wait_for(self.llm.complete(prompt, model), timeout=self.llm_timeout)

    async def _search(self, query: str) -> List[Place]:
        try:
            return await asyncio.wait_for(self.places.search(query, self.results_per_query), timeout=self.search_timeout)
        except Exception as exc:
            logger.warning("Place search failed for '%s': %s", query, exc)
            return []
