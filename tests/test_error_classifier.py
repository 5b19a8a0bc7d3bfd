import httpx
import pytest

from retinascan.services.diagnostics.error_classifier import (
    CONNECTIVITY_MESSAGE,
    classify,
    retry_after_seconds,
)

REQUEST = httpx.Request("POST", "http://backend.test/api/predict")


def status_error(status, *, json=None, text=None, headers=None) -> httpx.HTTPStatusError:
    if json is not None:
        response = httpx.Response(status, json=json, headers=headers, request=REQUEST)
    else:
        response = httpx.Response(status, text=text or "", headers=headers, request=REQUEST)
    return httpx.HTTPStatusError("failed", request=REQUEST, response=response)


def test_structured_error_field_used_verbatim():
    result = classify(status_error(500, json={"error": "CUDA out of memory"}))
    assert result.status == 500
    assert result.message == "CUDA out of memory"
    assert result.from_server is True


def test_message_field_used_when_no_error_field():
    result = classify(status_error(400, json={"message": "Image unreadable"}))
    assert result.message == "Image unreadable"


def test_fastapi_detail_field_is_recognised():
    result = classify(status_error(503, json={"detail": "Model not loaded"}))
    assert result.message == "Model not loaded"
    assert result.from_server is True


def test_status_only_synthesizes_message():
    result = classify(status_error(502, text="<html>Bad gateway</html>"))
    assert result.status == 502
    assert result.message == "Request failed with status 502."
    assert result.from_server is False


def test_non_string_detail_is_ignored():
    result = classify(status_error(422, json={"detail": [{"loc": ["file"]}]}))
    assert result.message == "Request failed with status 422."


@pytest.mark.parametrize(
    "exc",
    [
        httpx.ConnectTimeout("timed out", request=REQUEST),
        httpx.ReadTimeout("timed out", request=REQUEST),
        httpx.ConnectError("refused", request=REQUEST),
        RuntimeError("anything else"),
    ],
)
def test_no_response_gives_connectivity_message(exc):
    result = classify(exc)
    assert result.status is None
    assert result.message == CONNECTIVITY_MESSAGE


@pytest.mark.parametrize(
    "header, expected",
    [("10", 10.0), ("2.5", 2.5), ("0", 0.0), (" 7 ", 7.0)],
)
def test_numeric_retry_after(header, expected):
    assert retry_after_seconds(status_error(429, headers={"Retry-After": header})) == expected


@pytest.mark.parametrize("header", ["", "soon", "-4", "inf", "Wed, 21 Oct 2026 07:28:00 GMT"])
def test_unusable_retry_after(header):
    assert retry_after_seconds(status_error(429, headers={"Retry-After": header})) is None


def test_retry_after_without_response():
    assert retry_after_seconds(httpx.ReadTimeout("slow", request=REQUEST)) is None
    assert retry_after_seconds(status_error(429)) is None


def test_retry_after_overflowing_milliseconds_is_ignored():
    header = "1" + "0" * 307
    assert retry_after_seconds(status_error(429, headers={"Retry-After": header})) is None
