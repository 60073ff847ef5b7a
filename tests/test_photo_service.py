import contextvars
import logging
from unittest.mock import MagicMock

import httpx

from request_context import get_request_id, new_request_id
from services.photo_service import (
    PLACEHOLDER_IMAGES,
    GooglePlacesClient,
    PhotoEnricher,
    UnsplashClient,
    placeholder_image,
)


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestPlaceholderImage:

    def test_deterministic(self):
        assert placeholder_image("Louvre Museum", "destination") == placeholder_image("Louvre Museum", "destination")

    def test_picks_from_kind_list(self):
        assert placeholder_image("Le Meurice", "hotel") in PLACEHOLDER_IMAGES["hotel"]
        assert placeholder_image("Le Comptoir", "restaurant") in PLACEHOLDER_IMAGES["restaurant"]

    def test_known_hash(self):
        # hash("a") == 97 -> 97 % 5 == 2
        assert placeholder_image("a", "hotel") == PLACEHOLDER_IMAGES["hotel"][2]

    def test_unknown_kind_uses_destination_images(self):
        assert placeholder_image("x", "museum") in PLACEHOLDER_IMAGES["destination"]

    def test_long_seed_stays_in_range(self):
        assert placeholder_image("Cathédrale Notre-Dame de Paris " * 20, "destination") in PLACEHOLDER_IMAGES["destination"]


class TestGooglePlacesClient:

    def test_text_search_photo(self):
        seen = []

        def handler(request):
            seen.append(request.url)
            return httpx.Response(200, json={
                "status": "OK",
                "results": [{"place_id": "p1", "photos": [{"photo_reference": "REF123"}]}],
            })

        google = GooglePlacesClient("gkey", client=_client(handler))
        url = google.find_photo_url("Louvre Museum", {"latitude": 48.8606, "longitude": 2.3376})

        assert url == (
            "https://maps.googleapis.com/maps/api/place/photo?maxwidth=800&photo_reference=REF123&key=gkey"
        )
        assert seen[0].path.endswith("/textsearch/json")
        assert seen[0].params["query"] == "Louvre Museum"
        assert seen[0].params["location"] == "48.8606,2.3376"
        assert seen[0].params["radius"] == "5000"

    def test_falls_back_to_place_details(self):
        def handler(request):
            if request.url.path.endswith("/textsearch/json"):
                return httpx.Response(200, json={"status": "OK", "results": [{"place_id": "p9"}]})
            assert request.url.params["place_id"] == "p9"
            assert request.url.params["fields"] == "photos"
            return httpx.Response(200, json={"status": "OK", "result": {"photos": [{"photo_reference": "DETAIL"}]}})

        url = GooglePlacesClient("gkey", client=_client(handler)).find_photo_url("Some Place")
        assert "photo_reference=DETAIL" in url

    def test_request_denied_logged(self, caplog):
        google = GooglePlacesClient("gkey", client=_client(
            lambda request: httpx.Response(200, json={"status": "REQUEST_DENIED", "results": []})
        ))
        with caplog.at_level(logging.WARNING, logger="photos"):
            assert google.find_photo_url("Louvre") is None
        assert any("REQUEST_DENIED" in r.getMessage() for r in caplog.records if r.levelno == logging.ERROR)

    def test_batches_of_five_with_delay(self):
        def handler(request):
            name = request.url.params["query"]
            return httpx.Response(200, json={"status": "OK", "results": [{"photos": [{"photo_reference": name}]}]})

        sleep = MagicMock()
        google = GooglePlacesClient("gkey", batch_size=5, batch_delay_s=0.1, client=_client(handler), sleep=sleep)
        places = [(f"place{i}", None) for i in range(12)]

        urls = google.find_photo_urls(places)

        assert len(urls) == 12
        for i, url in enumerate(urls):
            assert f"photo_reference=place{i}&" in url
        assert sleep.call_count == 2
        sleep.assert_called_with(0.1)

    def test_lookups_keep_request_id(self):
        seen = []

        def handler(request):
            seen.append(get_request_id())
            return httpx.Response(200, json={"status": "OK", "results": [{"photos": [{"photo_reference": "R"}]}]})

        def scenario():
            new_request_id("trace-abc123")
            google = GooglePlacesClient("gkey", client=_client(handler), sleep=MagicMock())
            return google.find_photo_urls([("a", None), ("b", None), ("c", None)])

        urls = contextvars.copy_context().run(scenario)

        assert all(urls)
        assert seen == ["trace-abc123"] * 3

    def test_per_place_errors_become_none(self):
        def handler(request):
            if request.url.params["query"] == "broken":
                return httpx.Response(500, text="oops")
            return httpx.Response(200, json={"status": "OK", "results": [{"photos": [{"photo_reference": "R"}]}]})

        urls = GooglePlacesClient("gkey", client=_client(handler), sleep=MagicMock()).find_photo_urls(
            [("ok", None), ("broken", None)]
        )
        assert urls[0] is not None
        assert urls[1] is None

    def test_not_configured(self):
        handler = MagicMock()
        google = GooglePlacesClient("", client=_client(handler))
        assert google.find_photo_urls([("a", None), ("b", None)]) == [None, None]
        handler.assert_not_called()


class TestUnsplashClient:

    def test_search_photo(self):
        def handler(request):
            assert request.url.params["per_page"] == "1"
            assert request.url.params["orientation"] == "landscape"
            assert request.url.params["client_id"] == "ukey"
            return httpx.Response(200, json={"results": [{"urls": {"regular": "https://images.unsplash.com/r1"}}]})

        assert UnsplashClient("ukey", client=_client(handler)).search_photo("Louvre Paris") == "https://images.unsplash.com/r1"

    def test_query_per_kind(self):
        queries = []

        def handler(request):
            queries.append(request.url.params["query"])
            return httpx.Response(200, json={"results": []})

        unsplash = UnsplashClient("ukey", client=_client(handler))
        assert unsplash.photos_for_places(["Le Meurice"], "Paris", kind="hotel") == [None]
        unsplash.photos_for_places(["Septime"], "Paris", kind="restaurant")
        unsplash.photos_for_places(["Louvre"], "Paris")
        assert queries == ["Le Meurice hotel Paris", "Septime restaurant Paris", "Louvre Paris"]

    def test_http_error_returns_none(self):
        unsplash = UnsplashClient("ukey", client=_client(lambda request: httpx.Response(401, json={})))
        assert unsplash.search_photo("Louvre") is None

    def test_not_configured(self):
        assert UnsplashClient("").search_photo("Louvre") is None


class TestPhotoEnricher:

    def _plan(self):
        return {
            "itinerary": [
                {"title": "Louvre Museum", "coordinates": {"latitude": 48.86, "longitude": 2.33}},
                {"title": "Eiffel Tower", "coordinates": {"latitude": 48.85, "longitude": 2.29}},
            ],
            "hotels": [{"name": "Le Meurice", "imageUrl": "https://example.test/meurice.jpg"}],
            "restaurants": [{"name": "Septime", "coordinates": {"latitude": 48.85, "longitude": 2.38}}],
        }

    def test_google_then_placeholders(self):
        google = MagicMock(configured=True)
        google.find_photo_urls.side_effect = lambda places: [
            "https://g/louvre" if name == "Louvre Museum" else None for name, _ in places
        ]
        plan = PhotoEnricher(google=google).enrich(self._plan(), "Paris")

        assert plan["itinerary"][0]["imageUrl"] == "https://g/louvre"
        assert plan["itinerary"][1]["imageUrl"] == placeholder_image("Eiffel Tower", "destination")
        assert plan["restaurants"][0]["imageUrl"] == placeholder_image("Septime", "restaurant")

    def test_unsplash_unused_when_google_worked(self):
        google = MagicMock(configured=True)
        google.find_photo_urls.side_effect = lambda places: [None for _ in places]
        unsplash = MagicMock(configured=True)

        plan = PhotoEnricher(google=google, unsplash=unsplash).enrich(self._plan(), "Paris")

        unsplash.photos_for_places.assert_not_called()
        assert plan["itinerary"][0]["imageUrl"] == placeholder_image("Louvre Museum", "destination")

    def test_google_failure_falls_back_to_unsplash(self):
        google = MagicMock(configured=True)
        google.find_photo_urls.side_effect = RuntimeError("quota")
        unsplash = MagicMock(configured=True)
        unsplash.photos_for_places.side_effect = lambda names, location, kind: [f"https://u/{n}" for n in names]

        plan = PhotoEnricher(google=google, unsplash=unsplash).enrich(self._plan(), "Paris")

        assert plan["itinerary"][0]["imageUrl"] == "https://u/Louvre Museum"
        assert plan["restaurants"][0]["imageUrl"] == "https://u/Septime"
        # existing image is kept
        assert plan["hotels"][0]["imageUrl"] == "https://example.test/meurice.jpg"

    def test_unsplash_failure_never_raises(self):
        unsplash = MagicMock(configured=True)
        unsplash.photos_for_places.side_effect = httpx.ConnectError("down")
        plan = PhotoEnricher(unsplash=unsplash).enrich(self._plan(), "Paris")
        assert all(item["imageUrl"] for key in ("itinerary", "hotels", "restaurants") for item in plan[key])

    def test_no_sources_only_placeholders(self):
        plan = PhotoEnricher().enrich({"itinerary": [{"title": "Louvre"}], "hotels": [], "restaurants": []}, "Paris")
        assert plan["itinerary"][0]["imageUrl"] == placeholder_image("Louvre", "destination")
