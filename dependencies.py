# dependencies.py
"""Long-lived service objects, built once and handed to routes via Depends."""
from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException

from config import settings
from services.auth_service import SupabaseAuthService
from services.llm_providers import HuggingFaceTextGenerator, ProviderDispatcher
from services.photo_service import GooglePlacesClient, PhotoEnricher, UnsplashClient
from services.route_service import RouteService
from services.travel_planner import TravelPlanner

@lru_cache(maxsize=1)
def get_dispatcher() -> ProviderDispatcher:
    return ProviderDispatcher.from_settings(settings)

@lru_cache(maxsize=1)
def get_text_generator() -> HuggingFaceTextGenerator:
    return HuggingFaceTextGenerator(settings.HUGGINGFACE_TOKEN, settings.HUGGINGFACE_TEXT_MODEL)

@lru_cache(maxsize=1)
def get_photo_enricher() -> PhotoEnricher:
    google = GooglePlacesClient(
        settings.GOOGLE_PLACES_API_KEY,
        batch_size=settings.PHOTO_BATCH_SIZE,
        batch_delay_s=settings.PHOTO_BATCH_DELAY_S,
    )
    return PhotoEnricher(google=google, unsplash=UnsplashClient(settings.UNSPLASH_ACCESS_KEY))

@lru_cache(maxsize=1)
def get_planner() -> TravelPlanner:
    return TravelPlanner.from_settings(settings, get_dispatcher(), get_photo_enricher())

@lru_cache(maxsize=1)
def get_route_service() -> RouteService:
    return RouteService(settings.OSRM_BASE_URL)

@lru_cache(maxsize=1)
def _auth_service() -> SupabaseAuthService:
    return SupabaseAuthService(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)

def get_auth_service() -> SupabaseAuthService:
    if not settings.supabase_configured:
        raise HTTPException(
            status_code=500,
            detail="Supabase is not configured. Please set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY in .env",
        )
    return _auth_service()
