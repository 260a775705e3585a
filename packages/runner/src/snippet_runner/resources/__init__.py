from .fetcher import ReferenceBinary, ReferenceFetcher
from .http import HttpStatusError, framework_uri, make_http_client
from .manifest import FingerprintEntry, ResourceManifest
from .resolver import IResourceResolver, ManifestResolver
from .singleflight import FlightState, SingleFlight

__all__ = [
    "FingerprintEntry",
    "FlightState",
    "framework_uri",
    "HttpStatusError",
    "IResourceResolver",
    "make_http_client",
    "ManifestResolver",
    "ReferenceBinary",
    "ReferenceFetcher",
    "ResourceManifest",
    "SingleFlight",
]
