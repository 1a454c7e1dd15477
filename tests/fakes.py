"""Fake HTTP sessions and provider payload builders for tests."""
from urllib.parse import urlparse
import requests


ARCGIS_URL = "https://services2.arcgis.com/test/arcgis/rest/services/State_Forests/FeatureServer/0/query"
ARCGIS_HOST = "services2.arcgis.com"
GOOGLE_HOST = "maps.googleapis.com"
NOMINATIM_HOST = "nominatim.openstreetmap.org"
LOCAL_NOMINATIM_HOST = "localhost"


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload=None, status_code: int = 200):
        self.payload = payload
        self.status_code = status_code

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """
    Routes GET requests by hostname to handlers.

    A handler is a callable (url, params) -> FakeResponse, or a list of
    responses returned in order (the last one repeats). Exceptions are raised.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        host = urlparse(url).hostname
        self.calls.append({"host": host, "url": url, "params": dict(params or {}),
                           "headers": dict(headers or {}), "timeout": timeout})
        handler = self.routes.get(host)
        if handler is None:
            raise requests.ConnectionError(f"No route for {host}")

        if isinstance(handler, list):
            result = handler.pop(0) if len(handler) > 1 else handler[0]
        else:
            result = handler(url, dict(params or {}))

        if isinstance(result, Exception):
            raise result
        return result

    def calls_to(self, host):
        return [call for call in self.calls if call["host"] == host]


def square_ring(lon: float, lat: float, half: float = 0.05):
    """Closed square ring centred on (lon, lat)."""
    return [
        [lon - half, lat - half],
        [lon + half, lat - half],
        [lon + half, lat + half],
        [lon - half, lat + half],
        [lon - half, lat - half],
    ]


def arcgis_feature(name: str, number, lon: float = 149.57, lat: float = -35.89):
    return {
        "attributes": {"SFName": name, "SFNo": number},
        "geometry": {"rings": [square_ring(lon, lat)]},
    }


def arcgis_response(*features):
    return FakeResponse({"features": list(features)})


def google_response(lat: float, lng: float, formatted_address: str, types=None):
    return FakeResponse({
        "status": "OK",
        "results": [{
            "formatted_address": formatted_address,
            "types": types or ["natural_feature"],
            "geometry": {"location": {"lat": lat, "lng": lng}},
        }],
    })


def nominatim_response(lat, lon, display_name: str, importance=0.6):
    return FakeResponse([{
        "lat": str(lat),
        "lon": str(lon),
        "display_name": display_name,
        "importance": importance,
    }])
