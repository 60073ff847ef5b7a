import copy
import os
import sys

import pytest

# Project root, so `main`, `models`, `services.*` import by name
_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _root not in sys.path:
    sys.path.insert(0, _root)

from services.llm_providers import Completion, ProviderError


class FakeProvider:
    """Stands in for a Groq/HF/Gemini provider inside ProviderDispatcher."""

    def __init__(self, name="fake", content="", error=None, configured=True):
        self.name = name
        self.content = content
        self.error = error
        self.configured = configured
        self.calls = []

    def is_configured(self):
        return self.configured

    def chat(self, messages, model_hint=None, options=None):
        self.calls.append({"messages": list(messages), "model_hint": model_hint, "options": options})
        if self.error is not None:
            raise self.error
        return Completion(content=self.content, usage={"totalTokens": 42}, provider=self.name, model=model_hint or "fake-model")


RAW_PARIS_PLAN = {
    "destination": "Paris, France",
    "startDate": "2025-06-01",
    "endDate": "2025-06-03",
    "totalDays": 3,
    "estimatedTotalCost": 1250,
    "currency": "eur",
    "itinerary": [
        {
            "title": "Eiffel Tower",
            "description": "Iron lattice tower on the Champ de Mars.",
            "coordinates": {"latitude": 48.858370, "longitude": 2.294481},
            "visitOrder": 3,
            "estimatedDuration": "2 hours",
            "imageUrl": None,
            "price": 29.4,
            "ticketLink": "https://www.toureiffel.paris/en",
        },
        {
            "title": "Louvre Museum",
            "description": "The world's most-visited museum.",
            "coordinates": {"latitude": 48.860611, "longitude": 2.337644},
            "visitOrder": 1,
            "estimatedDuration": "Half day",
            "imageUrl": None,
            "price": 22,
            "ticketLink": None,
        },
        {
            "title": "Made Up Plaza",
            "description": "Bad coordinates.",
            "coordinates": {"latitude": 148.0, "longitude": 2.3},
            "visitOrder": 2,
        },
        {
            "title": "Musee d'Orsay",
            "description": "Impressionist masterpieces in a former railway station.",
            "coordinates": {"latitude": 48.859961, "longitude": 2.326561},
            "visitOrder": 2,
            "estimatedDuration": "3 hours",
            "imageUrl": None,
            "price": "€16",
            "ticketLink": None,
        },
    ],
    "hotels": [
        {
            "name": "Hotel Le Meurice",
            "description": "Palace hotel facing the Tuileries.",
            "coordinates": {"latitude": 48.865097, "longitude": 2.328079},
            "bookingLinks": {
                "booking": "https://www.booking.com/hotel/fr/le-meurice.html",
                "expedia": "N/A",
                "agoda": "N/A",
                "hotels": "N/A",
            },
            "estimatedPrice": 1200,
        },
        {
            "name": "Hilton Paris Grand Plaza",
            "description": "Probably invented.",
            "coordinates": {"latitude": 48.87, "longitude": 2.33},
            "bookingLinks": {"booking": "N/A", "expedia": "N/A", "agoda": "N/A", "hotels": "N/A"},
            "estimatedPrice": 300,
        },
    ],
    "selectedHotelIndex": 0,
    "restaurants": [
        {
            "name": "Le Comptoir du Relais",
            "description": "Classic bistro in Saint-Germain.",
            "cuisine": "French",
            "priceRange": "$$",
            "coordinates": {"latitude": 48.852120, "longitude": 2.338900},
            "rating": 4.5,
            "website": None,
            "imageUrl": None,
        },
        {
            "name": "Nowhere Cafe",
            "description": "No coordinates at all.",
            "cuisine": "Cafe",
        },
    ],
    "recommendations": ["Buy a Navigo pass for the metro", "Book the Louvre online"],
}


@pytest.fixture
def raw_plan():
    return copy.deepcopy(RAW_PARIS_PLAN)


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def provider_error():
    def _make(provider="groq", message="boom", status_code=None):
        return ProviderError(provider, message, status_code)
    return _make


@pytest.fixture
def app():
    from main import app as fastapi_app
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
