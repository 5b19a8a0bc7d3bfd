import asyncio

import httpx
import pytest

from conftest import PNG_BYTES, Recorder, make_settings
from retinascan.errors import (
    ConfigurationError,
    ConnectivityFailure,
    HttpFailure,
    ModelUnavailable,
    ModelWarmingUp,
    NoFileSelected,
    RateLimited,
)
from retinascan.schemas import BackendHealthState
from retinascan.services.client.cooldown import CooldownGate
from retinascan.services.client.orchestrator import (
    EndpointVariant,
    RequestOrchestrator,
    build_variants,
)
from retinascan.services.client.upload import validate_upload
from retinascan.services.diagnostics.error_classifier import CONNECTIVITY_MESSAGE

READY = BackendHealthState(model_loaded=True, model_loading=False)
OK_BODY = {"success": True, "prediction": {"class": "No_DR", "confidence": 0.93}}


def run(coro):
    return asyncio.run(coro)


def analyze(
    recorder,
    *,
    settings=None,
    clock=None,
    health=READY,
    candidate="default",
    gradcam=False,
    calls=1,
    between=0.0,
):
    """Drive one orchestrator through ``calls`` analyze() attempts.

    Returns a list with the result or raised exception of each attempt.
    """
    settings = settings or make_settings()
    if candidate == "default":
        candidate = validate_upload("eye.png", PNG_BYTES, settings)

    async def scenario():
        outcomes = []
        async with httpx.AsyncClient(transport=recorder.transport) as client:
            kwargs = {"clock": clock} if clock is not None else {}
            gate = CooldownGate(settings, **kwargs)
            orchestrator = RequestOrchestrator(client, settings, gate, lambda: health)
            for index in range(calls):
                if index and clock is not None:
                    clock.advance(between)
                try:
                    outcomes.append(await orchestrator.analyze(candidate, gradcam))
                except Exception as exc:  # noqa: BLE001
                    outcomes.append(exc)
        return outcomes

    return run(scenario())


def test_variants_order_gradcam_first():
    settings = make_settings(predict_paths=["/api/predict", "/predict"])
    assert build_variants(settings, False) == [EndpointVariant("/api/predict"), EndpointVariant("/predict")]
    assert [v.describe() for v in build_variants(settings, True)] == [
        "/api/predict?gradcam=1",
        "/predict?gradcam=1",
        "/api/predict",
        "/predict",
    ]


def test_success_sends_multipart_file_field():
    recorder = Recorder(lambda request: httpx.Response(200, json=OK_BODY))
    (result,) = analyze(recorder)

    assert result.success is True
    assert result.class_label == "No_DR"
    assert result.confidence_percent == pytest.approx(93.0)

    (request,) = recorder.requests
    assert request.method == "POST"
    assert str(request.url) == "http://backend.test/api/predict"
    assert request.headers["content-type"].startswith("multipart/form-data")
    body = request.read()
    assert b'name="file"' in body
    assert b'filename="eye.png"' in body
    assert PNG_BYTES in body


def test_gradcam_timeout_falls_back_to_bare_endpoint():
    def respond(request):
        if request.url.params.get("gradcam") == "1":
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json=OK_BODY)

    recorder = Recorder(respond)
    (result,) = analyze(recorder, gradcam=True)

    assert result.success is True
    assert [str(r.url) for r in recorder.requests] == [
        "http://backend.test/api/predict?gradcam=1",
        "http://backend.test/api/predict",
    ]


def test_application_failure_is_final():
    body = {"success": False, "error": "Model not ready"}
    recorder = Recorder(lambda request: httpx.Response(200, json=body))
    (result,) = analyze(recorder, gradcam=True)

    assert result.success is False
    assert result.error_message == "Model not ready"
    assert len(recorder.requests) == 1


def test_non_json_success_body_is_invalid_and_final():
    recorder = Recorder(lambda request: httpx.Response(200, text="<html>proxy page</html>"))
    (result,) = analyze(recorder, gradcam=True)

    assert result.success is False
    assert result.error_message == "Invalid server response."
    assert len(recorder.requests) == 1


def test_all_variants_failing_reports_last_http_error():
    recorder = Recorder(lambda request: httpx.Response(500, json={"error": "CUDA out of memory"}))
    (exc,) = analyze(recorder, gradcam=True)

    assert isinstance(exc, HttpFailure)
    assert exc.status == 500
    assert exc.message == "CUDA out of memory"
    assert len(recorder.requests) == 2


def test_all_variants_unreachable_reports_connectivity():
    def respond(request):
        raise httpx.ConnectError("refused", request=request)

    recorder = Recorder(respond)
    (exc,) = analyze(recorder)

    assert isinstance(exc, ConnectivityFailure)
    assert exc.message == CONNECTIVITY_MESSAGE


def test_503_retry_after_blocks_next_attempt_without_network(clock):
    recorder = Recorder(
        lambda request: httpx.Response(503, json={"error": "Busy"}, headers={"Retry-After": "3"})
    )
    first, second = analyze(recorder, clock=clock, calls=2, between=1.0)

    assert isinstance(first, HttpFailure)
    assert first.message == "Busy Try again in 3s."
    assert isinstance(second, RateLimited)
    assert second.remaining_seconds == 2
    assert second.message == "Rate limit exceeded. Try again in 2s."
    assert len(recorder.requests) == 1


def test_429_sets_default_window(clock):
    recorder = Recorder(lambda request: httpx.Response(429))
    first, second = analyze(recorder, clock=clock, calls=2, between=30.0)

    assert first.message == "Rate limit exceeded. Try again in 60s."
    assert isinstance(second, RateLimited)
    assert second.remaining_seconds == 30
    assert len(recorder.requests) == 1


def test_413_does_not_start_cooldown(clock):
    recorder = Recorder(lambda request: httpx.Response(413))
    first, second = analyze(recorder, clock=clock, calls=2)

    assert first.message == "File too large. Maximum allowed size is 5 MB."
    assert isinstance(second, HttpFailure)
    assert len(recorder.requests) == 2


@pytest.mark.parametrize(
    "health, error",
    [
        (BackendHealthState(model_loaded=False, model_loading=True), ModelWarmingUp),
        (BackendHealthState(model_loaded=True, model_loading=True), ModelWarmingUp),
        (BackendHealthState(model_loaded=False, model_loading=False), ModelUnavailable),
    ],
)
def test_backend_not_ready_fails_fast(health, error):
    recorder = Recorder(lambda request: httpx.Response(200, json=OK_BODY))
    (exc,) = analyze(recorder, health=health)

    assert isinstance(exc, error)
    assert recorder.requests == []


def test_unknown_health_does_not_block():
    recorder = Recorder(lambda request: httpx.Response(200, json=OK_BODY))
    (result,) = analyze(recorder, health=None)
    assert result.success is True


def test_missing_file_fails_fast():
    recorder = Recorder(lambda request: httpx.Response(200, json=OK_BODY))
    (exc,) = analyze(recorder, candidate=None)

    assert isinstance(exc, NoFileSelected)
    assert exc.message == "Please select an image first."
    assert recorder.requests == []


def test_cooldown_checked_before_readiness_and_file(clock):
    recorder = Recorder(lambda request: httpx.Response(429, headers={"Retry-After": "10"}))
    settings = make_settings()

    async def scenario():
        async with httpx.AsyncClient(transport=recorder.transport) as client:
            gate = CooldownGate(settings, clock=clock)
            health = {"state": READY}
            orchestrator = RequestOrchestrator(client, settings, gate, lambda: health["state"])
            candidate = validate_upload("eye.jpg", PNG_BYTES, settings)
            with pytest.raises(HttpFailure):
                await orchestrator.analyze(candidate)

            health["state"] = BackendHealthState(model_loaded=False, model_loading=True)
            with pytest.raises(RateLimited):
                orchestrator.preflight(None)

    run(scenario())


def test_missing_production_configuration_fails_fast():
    recorder = Recorder(lambda request: httpx.Response(200, json=OK_BODY))
    settings = make_settings(environment="production", api_base_url="")
    (exc,) = analyze(recorder, settings=settings, health=None)

    assert isinstance(exc, ConfigurationError)
    assert "API_BASE_URL" in exc.message
    assert recorder.requests == []
