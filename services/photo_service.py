# services/photo_service.py
"""
Attach photos to the places of a generated plan.

Google Places is the primary source (real photos of the exact place), Unsplash
is the fallback for anything Google could not cover, and a deterministic stock
image fills whatever is still missing so the app never renders an empty card.
"""
from __future__ import annotations

import contextvars
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from request_context import get_request_id

log = logging.getLogger("photos")

PLACES_BASE = "https://maps.googleapis.com/maps/api/place"
UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"

REQUEST_DENIED_HINT = (
    "REQUEST_DENIED - This usually means:\n"
    "1. Places API is not enabled in Google Cloud Console\n"
    "2. API key is invalid or has restrictions\n"
    "3. API key doesn't have Places API permissions\n"
    "Please check: https://console.cloud.google.com/apis/library/places-backend.googleapis.com"
)

# (name, {"latitude": .., "longitude": ..} or None)
PlaceQuery = Tuple[str, Optional[Dict[str, Any]]]

# -----------------------------
# Placeholders
# -----------------------------

def _stock(photo_id: str) -> str:
    return f"https://images.unsplash.com/photo-{photo_id}?w=800&q=80"

PLACEHOLDER_IMAGES: Dict[str, Tuple[str, ...]] = {
    "destination": tuple(_stock(p) for p in (
        "1488646953014-85cb44e25828",
        "1469854523086-cc02fe5d8800",
        "1506905925346-21bda4d32df4",
        "1469474968028-56623f02e42e",
        "1507525428034-b723cf961d3e",
        "1504280390367-361c6d9f38f4",
    )),
    "hotel": tuple(_stock(p) for p in (
        "1566073771259-6a8506099945",
        "1520250497591-112f2f40a3f4",
        "1551882547-ff40c63fe5fa",
        "1564501049412-61c2a3083791",
        "1582719508461-905c673771fd",
    )),
    "restaurant": tuple(_stock(p) for p in (
        "1517248135467-4c7edcad34c4",
        "1555396273-367ea4eb4db5",
        "1414235077428-338989a2e8c0",
        "1559339352-11d035aa65de",
        "1514933651103-005eec06c04b",
    )),
}

def _string_hash(seed: str) -> int:
    """Java-style 32-bit string hash (h = h*31 + c, signed overflow)."""
    h = 0
    for ch in seed:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h

def placeholder_image(seed: str, kind: str = "destination") -> str:
    """Same seed and kind always give the same stock image."""
    images = PLACEHOLDER_IMAGES.get(kind, PLACEHOLDER_IMAGES["destination"])
    return images[abs(_string_hash(seed or "")) % len(images)]

# -----------------------------
# Google Places
# -----------------------------

class GooglePlacesClient:
    def __init__(
        self,
        api_key: str,
        batch_size: int = 5,
        batch_delay_s: float = 0.1,
        timeout_s: float = 10.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = api_key
        self.batch_size = max(1, batch_size)
        self.batch_delay_s = batch_delay_s
        self._client = client or httpx.Client(timeout=timeout_s)
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def photo_url(self, photo_reference: str, max_width: int = 800) -> str:
        return (
            f"{PLACES_BASE}/photo?maxwidth={max_width}"
            f"&photo_reference={photo_reference}&key={self.api_key}"
        )

    def _search(self, name: str, coordinates: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        params: Dict[str, Any] = {"query": name, "key": self.api_key}
        if coordinates:
            params["location"] = f"{coordinates['latitude']},{coordinates['longitude']}"
            params["radius"] = 5000
        r = self._client.get(f"{PLACES_BASE}/textsearch/json", params=params)
        r.raise_for_status()
        data = r.json()
        status = data.get("status")
        if status == "OK" and data.get("results"):
            return data["results"][0]
        if status != "OK":
            log.warning('Google Places API error for "%s": %s', name, status)
            if status == "REQUEST_DENIED":
                log.error(REQUEST_DENIED_HINT)
        return None

    def _details_photos(self, place_id: str) -> List[Dict[str, Any]]:
        r = self._client.get(
            f"{PLACES_BASE}/details/json",
            params={"place_id": place_id, "fields": "photos", "key": self.api_key},
        )
        r.raise_for_status()
        data = r.json()
        if data.get("status") == "OK":
            return (data.get("result") or {}).get("photos") or []
        return []

    def find_photo_url(self, name: str, coordinates: Optional[Dict[str, Any]] = None) -> Optional[str]:
        if not self.configured:
            return None
        place = self._search(name, coordinates)
        if not place:
            log.debug("Place not found: %s", name)
            return None
        photos = place.get("photos") or []
        if not photos and place.get("place_id"):
            photos = self._details_photos(place["place_id"])
        if photos and photos[0].get("photo_reference"):
            return self.photo_url(photos[0]["photo_reference"])
        log.debug("No photos available for place: %s", name)
        return None

    def _lookup(self, place: PlaceQuery) -> Optional[str]:
        name, coords = place
        try:
            url = self.find_photo_url(name, coords)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            log.warning("Error fetching photo for %s: %s", name, e)
            return None
        if url:
            log.debug("Found photo for: %s", name)
        else:
            log.debug("No photo found for: %s", name)
        return url

    def find_photo_urls(self, places: Sequence[PlaceQuery]) -> List[Optional[str]]:
        """Results line up with `places`; lookups run in parallel batches."""
        if not self.configured:
            log.warning("Google Places API key not configured - skipping photo fetch")
            return [None] * len(places)

        results: List[Optional[str]] = []
        for start in range(0, len(places), self.batch_size):
            batch = places[start:start + self.batch_size]
            # one context copy per task so worker logs keep the request id
            contexts = [contextvars.copy_context() for _ in batch]
            with ThreadPoolExecutor(max_workers=len(batch)) as pool:
                results.extend(pool.map(lambda ctx, place: ctx.run(self._lookup, place), contexts, batch))
            if start + self.batch_size < len(places):
                self._sleep(self.batch_delay_s)
        return results

# -----------------------------
# Unsplash
# -----------------------------

class UnsplashClient:
    def __init__(self, access_key: str, timeout_s: float = 10.0, client: Optional[httpx.Client] = None) -> None:
        self.access_key = access_key
        self._client = client or httpx.Client(timeout=timeout_s)

    @property
    def configured(self) -> bool:
        return bool(self.access_key)

    def search_photo(self, query: str, orientation: str = "landscape") -> Optional[str]:
        if not self.configured:
            return None
        try:
            r = self._client.get(
                UNSPLASH_SEARCH_URL,
                params={
                    "query": query,
                    "orientation": orientation,
                    "per_page": 1,
                    "client_id": self.access_key,
                },
            )
            r.raise_for_status()
            results = r.json().get("results") or []
        except (httpx.HTTPError, ValueError) as e:
            log.warning('Error fetching Unsplash photo for "%s": %s', query, e)
            return None
        if results:
            return ((results[0] or {}).get("urls") or {}).get("regular")
        return None

    def photos_for_places(self, places: Sequence[str], location: str, kind: str = "destination") -> List[Optional[str]]:
        out: List[Optional[str]] = []
        for name in places:
            if kind == "hotel":
                query = f"{name} hotel {location}"
            elif kind == "restaurant":
                query = f"{name} restaurant {location}"
            else:
                query = f"{name} {location}"
            out.append(self.search_photo(query.strip()))
        return out

# -----------------------------
# Enricher
# -----------------------------

_SECTIONS = (
    ("itinerary", "title", "destination"),
    ("hotels", "name", "hotel"),
    ("restaurants", "name", "restaurant"),
)

class PhotoEnricher:
    def __init__(self, google: Optional[GooglePlacesClient] = None, unsplash: Optional[UnsplashClient] = None) -> None:
        self.google = google
        self.unsplash = unsplash

    def enrich(self, plan: Dict[str, Any], destination: str) -> Dict[str, Any]:
        """Fill `imageUrl` on every itinerary stop, hotel and restaurant. Never raises."""
        rid = get_request_id()
        google_ok = False
        if self.google is not None and self.google.configured:
            try:
                self._apply_google(plan)
                google_ok = True
            except Exception as e:
                log.warning("Error fetching photos from Google Places API, trying Unsplash: %s", e,
                            extra={"request_id": rid})

        if not google_ok and self.unsplash is not None and self.unsplash.configured:
            try:
                self._apply_unsplash(plan, destination)
            except Exception as e:
                log.warning("Error adding Unsplash photos: %s", e, extra={"request_id": rid})

        filled = self._apply_placeholders(plan)
        log.info("Photos attached", extra={
            "request_id": rid,
            "google": google_ok,
            "placeholders": filled,
        })
        return plan

    def _apply_google(self, plan: Dict[str, Any]) -> None:
        for key, label, _kind in _SECTIONS:
            items = plan.get(key) or []
            if not items:
                continue
            urls = self.google.find_photo_urls([(str(i.get(label) or ""), i.get("coordinates")) for i in items])
            for item, url in zip(items, urls):
                if url:
                    item["imageUrl"] = url

    def _apply_unsplash(self, plan: Dict[str, Any], destination: str) -> None:
        for key, label, kind in _SECTIONS:
            missing = [i for i in (plan.get(key) or []) if not i.get("imageUrl")]
            if not missing:
                continue
            urls = self.unsplash.photos_for_places([str(i.get(label) or "") for i in missing], destination, kind)
            for item, url in zip(missing, urls):
                if url:
                    item["imageUrl"] = url

    def _apply_placeholders(self, plan: Dict[str, Any]) -> int:
        filled = 0
        for key, label, kind in _SECTIONS:
            for item in plan.get(key) or []:
                if not item.get("imageUrl"):
                    item["imageUrl"] = placeholder_image(str(item.get(label) or ""), kind)
                    filled += 1
        return filled
