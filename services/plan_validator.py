# services/plan_validator.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from models import Destination, Hotel, Restaurant

log = logging.getLogger("travel")

BOOKING_SITES = ("booking", "expedia", "agoda", "hotels")

# Chains the model likes to glue onto a city name ("Hilton Ashdod")
COMMON_CHAINS = (
    "dan panorama",
    "dan hotel",
    "hilton",
    "marriott",
    "sheraton",
    "hyatt",
    "radisson",
    "intercontinental",
    "holiday inn",
    "ramada",
)

class PlanValidationError(ValueError):
    pass

def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)

def valid_coordinates(coords: Any) -> bool:
    if not isinstance(coords, dict):
        return False
    lat = coords.get("latitude")
    lng = coords.get("longitude")
    if not (_is_number(lat) and _is_number(lng)):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180

def has_booking_link(links: Any) -> bool:
    if not isinstance(links, dict):
        return False
    for site in BOOKING_SITES:
        v = links.get(site)
        if isinstance(v, str) and v.strip() and v.strip().upper() != "N/A":
            return True
    return False

def city_of(destination: str) -> str:
    """'Ashdod, Israel' -> 'ashdod'."""
    return destination.split(",")[0].strip().lower()

def looks_like_chain_guess(hotel_name: str, destination: str) -> bool:
    name = hotel_name.lower()
    city = city_of(destination)
    return bool(city) and city in name and any(chain in name for chain in COMMON_CHAINS)

def _filter_by_coordinates(items: List[Any], kind: str, label_key: str) -> List[Dict[str, Any]]:
    kept: List[Dict[str, Any]] = []
    for item in items:
        if not isinstance(item, dict) or not item.get(label_key):
            continue
        coords = item.get("coordinates")
        if not valid_coordinates(coords):
            log.warning("Invalid coordinates for %s: %s", kind, item.get(label_key), extra={"coordinates": coords})
            continue
        kept.append(item)
    return kept

def _filter_hotels(hotels: List[Any], destination: str) -> List[Dict[str, Any]]:
    kept: List[Dict[str, Any]] = []
    for hotel in hotels:
        if not isinstance(hotel, dict) or not hotel.get("name"):
            continue
        name = str(hotel.get("name") or "")
        if not has_booking_link(hotel.get("bookingLinks")):
            if looks_like_chain_guess(name, destination):
                log.warning('Filtering out suspicious hotel "%s" - chain + city name with no booking links', name)
            else:
                log.warning('Filtering out hotel "%s" - no booking links available (likely unverified)', name)
            continue
        coords = hotel.get("coordinates")
        if coords is not None and not valid_coordinates(coords):
            log.warning("Invalid coordinates for hotel: %s", name, extra={"coordinates": coords})
            continue
        kept.append(hotel)
    return kept

def _drop_unparseable(items: List[Dict[str, Any]], model: Type[BaseModel], kind: str, label_key: str) -> List[Dict[str, Any]]:
    kept: List[Dict[str, Any]] = []
    for item in items:
        try:
            model.model_validate(item)
        except ValidationError as e:
            log.warning("Dropping %s %s: %d field error(s)", kind, item.get(label_key), e.error_count(),
                        extra={"fields": [".".join(str(p) for p in err["loc"]) for err in e.errors()]})
            continue
        kept.append(item)
    return kept

def _visit_key(indexed: tuple) -> tuple:
    i, dest = indexed
    order = dest.get("visitOrder")
    if _is_number(order):
        return (0, order, i)
    return (1, 0, i)

def order_itinerary(itinerary: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Stable sort by visitOrder, then renumber 1..n."""
    ordered = [d for _, d in sorted(enumerate(itinerary), key=_visit_key)]
    for n, dest in enumerate(ordered, start=1):
        dest["visitOrder"] = n
    return ordered

def validate_plan(plan: Dict[str, Any], destination: str) -> Dict[str, Any]:
    """
    Check required fields, apply defaults and drop entries the model most
    likely made up. Mutates and returns `plan`.

    Only whole-plan problems raise PlanValidationError; a bad itinerary stop,
    restaurant or hotel is removed on its own.
    """
    if not plan.get("destination") or "itinerary" not in plan or plan.get("itinerary") is None:
        raise PlanValidationError("AI response missing required fields")
    if not isinstance(plan["itinerary"], list):
        raise PlanValidationError("Itinerary must be an array")

    # Older prompt versions answered with a single "hotel"
    if plan.get("hotel") and not plan.get("hotels"):
        plan["hotels"] = [plan.pop("hotel")]
        plan["selectedHotelIndex"] = 0
    plan.pop("hotel", None)
    if not isinstance(plan.get("hotels"), list):
        raise PlanValidationError("Hotels must be an array")

    if not plan.get("currency"):
        plan["currency"] = "USD"
    if not isinstance(plan.get("restaurants"), list):
        plan["restaurants"] = []
    if not isinstance(plan.get("recommendations"), list):
        plan["recommendations"] = []
    else:
        plan["recommendations"] = [r for r in plan["recommendations"] if isinstance(r, str) and r.strip()]

    before = (len(plan["itinerary"]), len(plan["restaurants"]), len(plan["hotels"]))
    itinerary = order_itinerary(_filter_by_coordinates(plan["itinerary"], "destination", "title"))
    # renumbered again so dropped stops leave no gaps
    plan["itinerary"] = order_itinerary(_drop_unparseable(itinerary, Destination, "destination", "title"))
    plan["restaurants"] = _drop_unparseable(
        _filter_by_coordinates(plan["restaurants"], "restaurant", "name"), Restaurant, "restaurant", "name"
    )
    plan["hotels"] = _drop_unparseable(_filter_hotels(plan["hotels"], destination), Hotel, "hotel", "name")

    idx: Optional[Any] = plan.get("selectedHotelIndex")
    if not plan["hotels"]:
        plan.pop("selectedHotelIndex", None)
    elif _is_number(idx) and 0 <= int(idx) < len(plan["hotels"]):
        plan["selectedHotelIndex"] = int(idx)
    else:
        plan["selectedHotelIndex"] = 0

    log.info("Plan validated", extra={
        "itinerary_kept": f"{len(plan['itinerary'])}/{before[0]}",
        "restaurants_kept": f"{len(plan['restaurants'])}/{before[1]}",
        "hotels_kept": f"{len(plan['hotels'])}/{before[2]}",
    })
    return plan
