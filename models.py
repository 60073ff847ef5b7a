from __future__ import annotations

import re
from datetime import date
from typing import Any, Dict, List, Literal, Optional
from pydantic import (
    BaseModel,
    Field,
    ConfigDict,
    field_validator,
    model_validator,
    conint,
    confloat,
)

from security import validate_destination

MISSING_PLAN_FIELDS = "Missing required fields: startDate, endDate, destination"

_NUMBER_RE = re.compile(r"-?\d{1,3}(?:,\d{3})+(?:\.\d+)?|-?\d+(?:[.,]\d+)?")

def lenient_number(v: Any) -> Optional[float]:
    """Models return prices as 25, "25", "€25" or "Free"; keep the first number or None."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return float(v)
    if isinstance(v, str):
        m = _NUMBER_RE.search(v.replace(" ", ""))
        if m:
            num = m.group(0)
            # "12,5" is a decimal comma, "1,250" a thousands separator
            if "," in num and "." not in num and len(num.rsplit(",", 1)[1]) != 3:
                num = num.replace(",", ".")
            return float(num.replace(",", ""))
    return None

def loose_text(v: Any) -> Any:
    """2 -> "2", ["French", "Bistro"] -> "French, Bistro"; anything else is left for pydantic."""
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, list) and v and all(isinstance(x, (str, int, float)) and not isinstance(x, bool) for x in v):
        return ", ".join(str(x) for x in v)
    return v

# -----------------------------
# Shared atoms
# -----------------------------

class Coordinates(BaseModel):
    model_config = ConfigDict(extra="ignore")
    latitude: confloat(ge=-90, le=90)
    longitude: confloat(ge=-180, le=180)

class BookingLinks(BaseModel):
    """One entry per OTA; each is a URL or the literal 'N/A'."""
    model_config = ConfigDict(extra="ignore")
    booking: Optional[str] = None
    expedia: Optional[str] = None
    agoda: Optional[str] = None
    hotels: Optional[str] = None

# -----------------------------
# Request
# -----------------------------

class TravelPlanRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    destination: str
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    budget: Optional[float] = Field(default=None, description="Trip budget in USD.")

    @field_validator("destination")
    @classmethod
    def _validate_destination(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError(MISSING_PLAN_FIELDS)
        return validate_destination(v)

    # date range first, then budget
    @model_validator(mode="after")
    def _validate_dates_and_budget(self) -> "TravelPlanRequest":
        if self.start_date >= self.end_date:
            raise ValueError("End date must be after start date")
        if self.budget is not None and self.budget <= 0:
            raise ValueError("Budget must be greater than 0 if provided")
        return self

    @property
    def total_days(self) -> int:
        return (self.end_date - self.start_date).days

class RouteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    origin: Coordinates
    destination: Coordinates

class ChatMessageIn(BaseModel):
    model_config = ConfigDict(extra="ignore")
    role: Literal["user", "assistant", "system"]
    content: str

class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    messages: Optional[List[ChatMessageIn]] = None
    model: Optional[str] = None
    max_tokens: Optional[conint(ge=1, le=8192)] = None
    temperature: Optional[confloat(ge=0, le=2)] = None

class TextGenerationRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    prompt: Any = None
    model: Optional[str] = None
    max_new_tokens: Optional[conint(ge=1, le=8192)] = None
    temperature: Optional[confloat(ge=0, le=2)] = None

# -----------------------------
# Response
# -----------------------------

class Destination(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str
    description: Optional[str] = None
    coordinates: Coordinates
    visit_order: conint(ge=1) = Field(alias="visitOrder")
    estimated_duration: Optional[str] = Field(default=None, alias="estimatedDuration")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    price: Optional[float] = None
    ticket_link: Optional[str] = Field(default=None, alias="ticketLink")

    @field_validator("title", "description", "estimated_duration", "ticket_link", "image_url", mode="before")
    @classmethod
    def _loose_text(cls, v):
        return loose_text(v)

    @field_validator("price", mode="before")
    @classmethod
    def _lenient_price(cls, v):
        return lenient_number(v)

class Hotel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    description: Optional[str] = None
    booking_links: BookingLinks = Field(default_factory=BookingLinks, alias="bookingLinks")
    estimated_price: Optional[float] = Field(default=None, alias="estimatedPrice")
    coordinates: Optional[Coordinates] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    @field_validator("name", "description", "image_url", mode="before")
    @classmethod
    def _loose_text(cls, v):
        return loose_text(v)

    @field_validator("estimated_price", mode="before")
    @classmethod
    def _lenient_price(cls, v):
        return lenient_number(v)

class Restaurant(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    description: Optional[str] = None
    cuisine: Optional[str] = None
    price_range: Optional[str] = Field(default=None, alias="priceRange")
    coordinates: Coordinates
    rating: Optional[confloat(ge=1, le=5)] = None
    website: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    @field_validator("name", "description", "cuisine", "price_range", "website", "image_url", mode="before")
    @classmethod
    def _loose_text(cls, v):
        return loose_text(v)

    @field_validator("rating", mode="before")
    @classmethod
    def _clamp_rating(cls, v):
        # Models sometimes answer 0 or 4.8/5 style values; keep what is usable
        if v is None or isinstance(v, bool):
            return None
        try:
            f = float(v)
        except (TypeError, ValueError):
            return None
        return min(5.0, max(1.0, f))

class TravelPlan(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    destination: str
    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")
    total_days: conint(ge=1) = Field(alias="totalDays")
    budget: Optional[float] = None
    currency: str = "USD"
    estimated_total_cost: Optional[float] = Field(default=None, alias="estimatedTotalCost")

    itinerary: List[Destination] = Field(default_factory=list)
    hotels: List[Hotel] = Field(default_factory=list)
    selected_hotel_index: Optional[conint(ge=0)] = Field(default=None, alias="selectedHotelIndex")
    restaurants: List[Restaurant] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)

    @field_validator("destination", mode="before")
    @classmethod
    def _loose_destination(cls, v):
        return loose_text(v)

    @field_validator("itinerary", "hotels", "restaurants", "recommendations", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return [] if v is None else v

    @field_validator("budget", "estimated_total_cost", mode="before")
    @classmethod
    def _lenient_numbers(cls, v):
        return lenient_number(v)

    @field_validator("currency", mode="before")
    @classmethod
    def _upper_currency(cls, v):
        if not v or not isinstance(v, str):
            return "USD"
        return v.strip().upper()

class TravelPlanResponse(BaseModel):
    success: bool
    data: Optional[TravelPlan] = None
    error: Optional[str] = None

class RoutePoint(BaseModel):
    latitude: float
    longitude: float

class Route(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    route: List[RoutePoint]
    distance: Optional[float] = Field(default=None, description="meters")
    duration: Optional[float] = Field(default=None, description="seconds")
    is_fallback: bool = Field(default=False, alias="isFallback")

# -----------------------------
# Auth payloads
# -----------------------------

class SignupRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    date_of_birth: Optional[str] = Field(default=None, alias="dateOfBirth")

class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    email: Optional[str] = None
    password: Optional[str] = None

class EmailRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    email: Optional[str] = None

class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    token: Optional[str] = None
    password: Optional[str] = None

def user_payload(user: Dict[str, Any], profile: Optional[Dict[str, Any]] = None, **overrides: Any) -> Dict[str, Any]:
    """Shape a Supabase user + profile row the way the mobile app expects it."""
    profile = profile or {}
    email = user.get("email") or ""
    out = {
        "id": user.get("id"),
        "email": email,
        "name": profile.get("name") or (email.split("@")[0] if email else "User"),
        "firstName": profile.get("firstName"),
        "lastName": profile.get("lastName"),
        "dateOfBirth": profile.get("dateOfBirth"),
        "emailVerified": bool(user.get("email_confirmed_at")),
    }
    out.update({k: v for k, v in overrides.items() if v is not None})
    return out
