# services/travel_planner.py
from __future__ import annotations

import logging
import time
from typing import Any, Optional

from pydantic import ValidationError

from models import TravelPlan, TravelPlanRequest
from request_context import get_request_id
from services.json_recovery import PlanParseError, lenient_decode
from services.llm_providers import GenerationOptions, ProviderDispatcher
from services.photo_service import PhotoEnricher
from services.plan_validator import PlanValidationError, validate_plan
from services.prompt_builder import build_plan_messages

log = logging.getLogger("travel")

RAW_PREVIEW_CHARS = 300

class TravelPlanner:
    """prompt -> LLM -> lenient decode -> validate/filter -> photos -> TravelPlan"""

    def __init__(
        self,
        dispatcher: ProviderDispatcher,
        enricher: PhotoEnricher,
        model_hint: Optional[str] = None,
        max_tokens: int = 4000,
        temperature: float = 0.1,
    ) -> None:
        self.dispatcher = dispatcher
        self.enricher = enricher
        self.model_hint = model_hint
        self.options = GenerationOptions(max_tokens=max_tokens, temperature=temperature)

    @classmethod
    def from_settings(cls, settings: Any, dispatcher: ProviderDispatcher, enricher: PhotoEnricher) -> "TravelPlanner":
        return cls(
            dispatcher,
            enricher,
            model_hint=settings.GROQ_MODEL,
            max_tokens=settings.PLAN_MAX_TOKENS,
            temperature=settings.PLAN_TEMPERATURE,
        )

    def create_plan(self, req: TravelPlanRequest) -> TravelPlan:
        rid = get_request_id()
        total_days = req.total_days
        t0 = time.perf_counter()
        log.info("Plan requested", extra={
            "request_id": rid,
            "destination": req.destination,
            "start_date": req.start_date.isoformat(),
            "end_date": req.end_date.isoformat(),
            "total_days": total_days,
            "has_budget": req.budget is not None,
        })

        messages = build_plan_messages(req.destination, req.start_date, req.end_date, total_days, req.budget)
        completion = self.dispatcher.generate(messages, model_hint=self.model_hint, options=self.options)
        content = completion.content or ""

        try:
            raw, report = lenient_decode(content)
            plan = validate_plan(raw, req.destination)
        except (PlanParseError, PlanValidationError) as e:
            log.error("Failed to parse AI response", extra={
                "request_id": rid,
                "provider": completion.provider,
                "error": str(e)[:200],
                "content_length": len(content),
            })
            raise type(e)(self._invalid_json_message(e, content)) from e

        # The request is authoritative for dates and budget
        plan["startDate"] = req.start_date.isoformat()
        plan["endDate"] = req.end_date.isoformat()
        plan["totalDays"] = total_days
        plan["budget"] = req.budget

        self.enricher.enrich(plan, req.destination)

        try:
            result = TravelPlan.model_validate(plan)
        except ValidationError as e:
            log.error("Plan failed schema validation", extra={"request_id": rid, "errors": e.error_count()})
            raise PlanValidationError(self._invalid_json_message(e, content)) from e

        log.info("Plan ready", extra={
            "request_id": rid,
            "provider": completion.provider,
            "model": completion.model,
            "recovery": report.stage,
            "stops": len(result.itinerary),
            "hotels": len(result.hotels),
            "restaurants": len(result.restaurants),
            "duration_ms": int((time.perf_counter() - t0) * 1000),
        })
        return result

    @staticmethod
    def _invalid_json_message(e: Exception, content: str) -> str:
        return f"AI returned invalid JSON: {e}. Response preview: {content[:RAW_PREVIEW_CHARS]}"
