# routes/travel.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from dependencies import get_planner, get_route_service
from models import RouteRequest, TravelPlanRequest, TravelPlanResponse
from request_context import get_request_id
from services.json_recovery import PlanParseError
from services.llm_providers import AllProvidersFailedError
from services.plan_validator import PlanValidationError
from services.route_service import RouteService
from services.travel_planner import TravelPlanner

log = logging.getLogger("travel")

router = APIRouter(prefix="/api/travel", tags=["travel"])

@router.post("/plan")
def create_plan(req: TravelPlanRequest, planner: TravelPlanner = Depends(get_planner)):
    try:
        plan = planner.create_plan(req)
    except (AllProvidersFailedError, PlanParseError, PlanValidationError) as e:
        log.error("Travel plan endpoint error: %s", str(e).splitlines()[0] if str(e) else type(e).__name__,
                  extra={"request_id": get_request_id(), "destination": req.destination})
        raise HTTPException(status_code=500, detail=str(e) or "Failed to generate travel plan") from e

    return TravelPlanResponse(success=True, data=plan).model_dump(mode="json", by_alias=True, exclude={"error"})

@router.post("/route")
def plan_route(req: RouteRequest, routes: RouteService = Depends(get_route_service)):
    route = routes.route(req.origin, req.destination)
    return {"success": True, "data": route.model_dump(mode="json", by_alias=True)}
