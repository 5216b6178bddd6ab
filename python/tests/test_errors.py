"""Tests for error handling: API envelopes and the LLM error taxonomy.

Verifies:
- Error envelope shape is correct
- Every API error code maps to correct HTTP status
- Unknown exceptions return E_INTERNAL with 500
- Malformed JSON returns E_INVALID_REQUEST
- Vendor failures map onto exactly one ErrorKind with the right retry policy
"""

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mentormind.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    InsufficientCoinsError,
    NotFoundError,
)
from mentormind.responses import error_response, success_response, unhandled_exception_handler
from mentormind.services.llm.errors import (
    ErrorKind,
    ProviderError,
    error_from_status,
    error_from_text,
    map_provider_error,
)


class TestErrorResponse:
    """Tests for error response envelope format."""

    def test_error_response_has_correct_shape(self):
        response = error_response(ApiErrorCode.E_NOT_FOUND, "Resource not found")

        assert response["error"]["code"] == "E_NOT_FOUND"
        assert response["error"]["message"] == "Resource not found"

    def test_error_response_includes_explicit_request_id(self):
        response = error_response(ApiErrorCode.E_INTERNAL, "boom", request_id="req-1")
        assert response["error"]["request_id"] == "req-1"

    def test_error_response_code_is_string(self):
        response = error_response(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
        assert isinstance(response["error"]["code"], str)


class TestSuccessResponse:
    def test_success_response_has_data_key(self):
        assert success_response({"balance": 500}) == {"data": {"balance": 500}}

    def test_success_response_with_list(self):
        assert success_response([1, 2]) == {"data": [1, 2]}


class TestErrorCodeToStatus:
    def test_all_error_codes_have_status_mapping(self):
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_STATUS, f"Missing status mapping for {code}"

    @pytest.mark.parametrize(
        "code,expected_status",
        [
            (ApiErrorCode.E_UNAUTHENTICATED, 401),
            (ApiErrorCode.E_INSUFFICIENT_COINS, 402),
            (ApiErrorCode.E_NOT_FOUND, 404),
            (ApiErrorCode.E_KEY_NOT_FOUND, 404),
            (ApiErrorCode.E_INVALID_REQUEST, 400),
            (ApiErrorCode.E_KEY_PROVIDER_INVALID, 400),
            (ApiErrorCode.E_KEY_INVALID_FORMAT, 400),
            (ApiErrorCode.E_AI_NOT_CONFIGURED, 503),
            (ApiErrorCode.E_INTERNAL, 500),
        ],
    )
    def test_error_code_maps_to_correct_status(self, code: ApiErrorCode, expected_status: int):
        assert ERROR_CODE_TO_STATUS[code] == expected_status


class TestApiErrorClass:
    def test_api_error_derives_status_code(self):
        error = ApiError(ApiErrorCode.E_KEY_INVALID_FORMAT, "bad key")
        assert error.status_code == 400
        assert error.message == "bad key"

    def test_not_found_error_defaults(self):
        error = NotFoundError()
        assert error.code == ApiErrorCode.E_NOT_FOUND
        assert error.status_code == 404

    def test_insufficient_coins_error(self):
        error = InsufficientCoinsError(balance=40, amount=100)
        assert error.status_code == 402
        assert error.balance == 40
        assert "100" in error.message


class TestMalformedJsonHandling:
    def test_malformed_json_returns_400(self, client: TestClient):
        response = client.post(
            "/ai-helper",
            content="{invalid json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_invalid_body_returns_400_not_422(self, client: TestClient):
        response = client.post("/ai-helper", json={"messages": "not-a-list"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_unknown_route_uses_envelope(self, client: TestClient):
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_NOT_FOUND"


class TestUnhandledExceptionHandling:
    def _crashing_client(self, message: str) -> TestClient:
        test_app = FastAPI()

        @test_app.get("/crash")
        def crash_endpoint():
            raise RuntimeError(message)

        test_app.add_exception_handler(Exception, unhandled_exception_handler)
        return TestClient(test_app, raise_server_exceptions=False)

    def test_unhandled_exception_returns_500_with_e_internal(self):
        response = self._crashing_client("Unexpected error").get("/crash")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "E_INTERNAL"

    def test_unhandled_exception_does_not_leak_details(self):
        response = self._crashing_client("SECRET_INTERNAL_DETAIL").get("/crash")
        assert "SECRET_INTERNAL_DETAIL" not in response.text


# =============================================================================
# LLM error taxonomy
# =============================================================================


class TestErrorFromStatus:
    @pytest.mark.parametrize(
        "status,kind,retryable",
        [
            (401, ErrorKind.CREDENTIAL_INVALID, False),
            (429, ErrorKind.RATE_LIMITED, True),
            (503, ErrorKind.SERVICE_UNAVAILABLE, True),
            (400, ErrorKind.BAD_REQUEST, True),
            (500, ErrorKind.SERVER_ERROR, True),
            (504, ErrorKind.SERVER_ERROR, True),
        ],
    )
    def test_status_classification(self, status, kind, retryable):
        error = error_from_status(status)
        assert error.kind == kind
        assert error.status_code == status
        assert error.retryable is retryable

    def test_overloaded_body_is_service_unavailable(self):
        error = error_from_status(529, '{"error": {"type": "overloaded_error"}}')
        assert error.kind == ErrorKind.SERVICE_UNAVAILABLE
        assert error.status_code == 503

    def test_overloaded_does_not_override_401(self):
        error = error_from_status(401, "overloaded")
        assert error.kind == ErrorKind.CREDENTIAL_INVALID

    def test_unknown_status_falls_back_to_text(self):
        error = error_from_status(418, "Rate limit reached for this org")
        assert error.kind == ErrorKind.RATE_LIMITED
        assert error.status_code == 429

    def test_unknown_status_and_text_is_generic_retryable_500(self):
        error = error_from_status(404, "model not found")
        assert error.kind == ErrorKind.UNRECOGNIZED
        assert error.status_code == 500
        assert error.retryable is True


class TestErrorFromText:
    @pytest.mark.parametrize(
        "text,status",
        [
            ("Unauthorized", 401),
            ("Authentication failed", 401),
            ("RATE LIMIT exceeded", 429),
            ("Service Unavailable", 503),
            ("engine overloaded", 503),
        ],
    )
    def test_substring_rules(self, text, status):
        assert error_from_text(text).status_code == status

    def test_nothing_matches(self):
        assert error_from_text("weird").kind == ErrorKind.UNRECOGNIZED


class TestMapProviderError:
    def test_provider_error_passes_through_with_provider(self):
        original = ProviderError(ErrorKind.RATE_LIMITED, status_code=429)
        mapped = map_provider_error(original, "openai")
        assert mapped is original
        assert mapped.provider == "openai"

    def test_http_status_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        response = httpx.Response(401, request=request, text="bad key")
        exc = httpx.HTTPStatusError("401", request=request, response=response)

        mapped = map_provider_error(exc, "openai")
        assert mapped.kind == ErrorKind.CREDENTIAL_INVALID
        assert mapped.retryable is False

    def test_transport_error_is_network_interrupted(self):
        mapped = map_provider_error(httpx.ReadError("reset"), "anthropic")
        assert mapped.kind == ErrorKind.NETWORK_INTERRUPTED
        assert mapped.status_code is None
        assert mapped.retryable is True

    def test_plain_exception_uses_text(self):
        mapped = map_provider_error(RuntimeError("upstream unavailable"))
        assert mapped.kind == ErrorKind.SERVICE_UNAVAILABLE


class TestProviderErrorWire:
    def test_wire_payload_with_code(self):
        wire = ProviderError(ErrorKind.RATE_LIMITED, status_code=429).to_wire()
        assert wire == {"error": "rate limit exceeded", "isRetryable": True, "code": 429}

    def test_wire_payload_without_code(self):
        wire = ProviderError(ErrorKind.NETWORK_INTERRUPTED).to_wire()
        assert "code" not in wire
        assert wire["isRetryable"] is True

    @pytest.mark.parametrize(
        "kind", [ErrorKind.CREDENTIAL_INVALID, ErrorKind.INSUFFICIENT_FUNDS, ErrorKind.CANCELLED]
    )
    def test_non_retryable_kinds(self, kind):
        assert ProviderError(kind).retryable is False

    def test_retry_policy_by_status(self):
        assert error_from_status(401).retryable is False
        assert all(error_from_status(s).retryable for s in (400, 429, 500, 502, 503))
