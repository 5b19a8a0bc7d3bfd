import httpx
import pytest

from retinascan.config import Settings

BASE = "http://backend.test"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeClock:
    """Epoch-milliseconds clock that only moves when told to."""

    def __init__(self, start_ms: float = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += seconds * 1000


class Recorder:
    """MockTransport handler that logs requests and answers from a callable."""

    def __init__(self, respond):
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    def paths(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def make_settings(**overrides) -> Settings:
    values = {
        "api_base_url": BASE,
        "environment": "development",
        "health_poll_seconds": 0.02,
        "statsig_server_secret": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
