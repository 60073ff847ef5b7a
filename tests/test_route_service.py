import httpx
import pytest

from models import Coordinates
from services.route_service import RouteService, haversine_m

LOUVRE = Coordinates(latitude=48.8606, longitude=2.3376)
EIFFEL = Coordinates(latitude=48.8584, longitude=2.2945)


def _service(handler):
    return RouteService("https://osrm.example.test/", client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestHaversine:

    def test_zero_for_same_point(self):
        assert haversine_m(LOUVRE, LOUVRE) == 0

    def test_louvre_to_eiffel(self):
        assert 3000 < haversine_m(LOUVRE, EIFFEL) < 3400


class TestRouteService:

    def test_osrm_route(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return httpx.Response(200, json={
                "code": "Ok",
                "routes": [{
                    "distance": 4120.5,
                    "duration": 610.2,
                    "geometry": {"coordinates": [[2.3376, 48.8606], [2.31, 48.86], [2.2945, 48.8584]]},
                }],
            })

        route = _service(handler).route(LOUVRE, EIFFEL)

        assert seen["url"].path == "/route/v1/driving/2.3376,48.8606;2.2945,48.8584"
        assert seen["url"].params["overview"] == "full"
        assert seen["url"].params["geometries"] == "geojson"
        assert [(p.latitude, p.longitude) for p in route.route] == [
            (48.8606, 2.3376), (48.86, 2.31), (48.8584, 2.2945),
        ]
        assert route.distance == 4120.5
        assert route.duration == 610.2
        assert route.is_fallback is False

    @pytest.mark.parametrize("response", [
        httpx.Response(500, text="upstream error"),
        httpx.Response(200, json={"code": "NoRoute", "routes": []}),
        httpx.Response(200, json={"code": "Ok", "routes": [{"geometry": {}}]}),
    ])
    def test_fallback_on_bad_response(self, response):
        route = _service(lambda request: response).route(LOUVRE, EIFFEL)
        assert route.is_fallback is True
        assert [(p.latitude, p.longitude) for p in route.route] == [(48.8606, 2.3376), (48.8584, 2.2945)]

    def test_fallback_on_network_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        route = _service(handler).route(LOUVRE, EIFFEL)
        distance = haversine_m(LOUVRE, EIFFEL)
        assert route.is_fallback is True
        assert route.distance == pytest.approx(distance)
        # 50 km/h assumed
        assert route.duration == pytest.approx(distance / 50000 * 3600)

    def test_wire_shape(self):
        route = _service(lambda request: httpx.Response(503)).route(LOUVRE, EIFFEL)
        payload = route.model_dump(by_alias=True)
        assert set(payload) == {"route", "distance", "duration", "isFallback"}
