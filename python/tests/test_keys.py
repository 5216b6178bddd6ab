"""Integration tests for user API key routes and service.

Tests cover:
- API safety: responses never include encrypted fields
- Validation: unknown provider, key too short, whitespace in key
- Overwrite semantics: one credential per user, new ciphertext on overwrite
- Revocation: wipe ciphertext, retain fingerprint, idempotent
- Key validation against the vendor (mocked)
- Provider model listing: vendor ids with a key, common models without
- Auth: every route requires a session token
"""

from uuid import uuid4

import httpx
import pytest
import respx
from sqlalchemy import select

from mentormind.db.models import UserApiKey
from mentormind.services.llm.anthropic_adapter import COMMON_ANTHROPIC_MODELS
from mentormind.services.llm.openai_adapter import COMMON_OPENAI_MODELS, COMMON_OPENROUTER_MODELS
from tests.helpers import (
    FAKE_ANTHROPIC_KEY,
    FAKE_OPENAI_KEY,
    FAKE_OPENROUTER_KEY,
    auth_headers,
)

SENSITIVE_FIELDS = ("encrypted_key", "key_nonce", "master_key_version", "api_key")

OPENAI_MODELS_URL = "https://api.openai.com/v1/models"


def store_key(client, user_id, provider="anthropic", api_key=FAKE_ANTHROPIC_KEY, **extra):
    body = {"provider": provider, "api_key": api_key, "model_id": "claude-sonnet-4-5", **extra}
    return client.post("/keys", json=body, headers=auth_headers(user_id))


def stored_row(db_session, user_id) -> UserApiKey:
    db_session.expire_all()
    return db_session.scalars(select(UserApiKey).where(UserApiKey.user_id == user_id)).one()


# =============================================================================
# API safety
# =============================================================================


class TestApiSafety:
    def test_store_response_excludes_sensitive_fields(self, client, test_user_id):
        response = store_key(client, test_user_id)

        assert response.status_code == 201
        data = response.json()["data"]
        for field in SENSITIVE_FIELDS:
            assert field not in data
        assert FAKE_ANTHROPIC_KEY not in response.text

    def test_list_excludes_sensitive_fields(self, client, test_user_id):
        store_key(client, test_user_id)

        response = client.get("/keys", headers=auth_headers(test_user_id))

        assert response.status_code == 200
        (key,) = response.json()["data"]
        for field in SENSITIVE_FIELDS:
            assert field not in key
        assert key["provider"] == "anthropic"
        assert key["model_id"] == "claude-sonnet-4-5"
        assert key["is_active"] is True

    def test_fingerprint_is_last_4_chars(self, client, test_user_id):
        response = store_key(client, test_user_id)
        assert response.json()["data"]["key_fingerprint"] == FAKE_ANTHROPIC_KEY[-4:]

    def test_key_is_encrypted_at_rest(self, client, test_user_id, db_session):
        store_key(client, test_user_id)

        row = stored_row(db_session, test_user_id)

        assert row.encrypted_key is not None
        assert FAKE_ANTHROPIC_KEY.encode() not in row.encrypted_key
        assert len(row.key_nonce) == 24


# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    def test_unknown_provider(self, client, test_user_id):
        response = store_key(client, test_user_id, provider="gemini")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_KEY_PROVIDER_INVALID"

    def test_provider_is_case_insensitive(self, client, test_user_id):
        response = store_key(client, test_user_id, provider="  OpenAI ", api_key=FAKE_OPENAI_KEY)

        assert response.status_code == 201
        assert response.json()["data"]["provider"] == "openai"

    def test_key_too_short(self, client, test_user_id):
        response = store_key(client, test_user_id, api_key="sk-short")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_KEY_INVALID_FORMAT"

    @pytest.mark.parametrize("separator", [" ", "\t", "\n"])
    def test_key_with_internal_whitespace(self, client, test_user_id, separator):
        api_key = FAKE_ANTHROPIC_KEY[:10] + separator + FAKE_ANTHROPIC_KEY[10:]

        response = store_key(client, test_user_id, api_key=api_key)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_KEY_INVALID_FORMAT"

    def test_surrounding_whitespace_is_stripped(self, client, test_user_id):
        response = store_key(client, test_user_id, api_key=f"  {FAKE_ANTHROPIC_KEY}\n")

        assert response.status_code == 201
        assert response.json()["data"]["key_fingerprint"] == FAKE_ANTHROPIC_KEY[-4:]

    def test_missing_model_id(self, client, test_user_id):
        response = client.post(
            "/keys",
            json={"provider": "anthropic", "api_key": FAKE_ANTHROPIC_KEY},
            headers=auth_headers(test_user_id),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"


# =============================================================================
# Overwrite semantics
# =============================================================================


class TestOverwrite:
    def test_second_store_overwrites_same_row(self, client, test_user_id):
        first = store_key(client, test_user_id)
        second = store_key(
            client, test_user_id, provider="openrouter", api_key=FAKE_OPENROUTER_KEY
        )

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["data"]["id"] == first.json()["data"]["id"]
        assert second.json()["data"]["provider"] == "openrouter"

        listed = client.get("/keys", headers=auth_headers(test_user_id)).json()["data"]
        assert len(listed) == 1

    def test_ciphertext_and_nonce_change(self, client, test_user_id, db_session):
        store_key(client, test_user_id)
        before = stored_row(db_session, test_user_id)
        old_ciphertext, old_nonce = before.encrypted_key, before.key_nonce

        store_key(client, test_user_id)
        after = stored_row(db_session, test_user_id)

        assert after.encrypted_key != old_ciphertext
        assert after.key_nonce != old_nonce

    def test_overwrite_reactivates_revoked_key(self, client, test_user_id):
        key_id = store_key(client, test_user_id).json()["data"]["id"]
        client.delete(f"/keys/{key_id}", headers=auth_headers(test_user_id))

        response = store_key(client, test_user_id)

        data = response.json()["data"]
        assert data["is_active"] is True
        assert data["revoked_at"] is None
        assert data["usage_count"] == 0

    def test_base_url_is_kept(self, client, test_user_id):
        response = store_key(
            client,
            test_user_id,
            provider="openai",
            api_key=FAKE_OPENAI_KEY,
            base_url="https://llm.example.test/v1",
        )
        assert response.json()["data"]["base_url"] == "https://llm.example.test/v1"


# =============================================================================
# Revocation
# =============================================================================


class TestRevocation:
    def test_revoke_wipes_ciphertext_and_keeps_fingerprint(self, client, test_user_id, db_session):
        key_id = store_key(client, test_user_id).json()["data"]["id"]

        response = client.delete(f"/keys/{key_id}", headers=auth_headers(test_user_id))

        assert response.status_code == 204
        row = stored_row(db_session, test_user_id)
        assert row.encrypted_key is None
        assert row.key_nonce is None
        assert row.master_key_version is None
        assert row.is_active is False
        assert row.revoked_at is not None
        assert row.key_fingerprint == FAKE_ANTHROPIC_KEY[-4:]

    def test_revoke_is_idempotent(self, client, test_user_id):
        key_id = store_key(client, test_user_id).json()["data"]["id"]
        headers = auth_headers(test_user_id)

        assert client.delete(f"/keys/{key_id}", headers=headers).status_code == 204
        assert client.delete(f"/keys/{key_id}", headers=headers).status_code == 204

    def test_revoke_other_users_key_is_404(self, client, test_user_id):
        key_id = store_key(client, test_user_id).json()["data"]["id"]

        response = client.delete(f"/keys/{key_id}", headers=auth_headers(uuid4()))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_KEY_NOT_FOUND"

    def test_revoke_unknown_key_is_404(self, client, test_user_id):
        response = client.delete(f"/keys/{uuid4()}", headers=auth_headers(test_user_id))
        assert response.status_code == 404


# =============================================================================
# Listing
# =============================================================================


class TestListKeys:
    def test_empty(self, client, test_user_id):
        response = client.get("/keys", headers=auth_headers(test_user_id))
        assert response.json() == {"data": []}

    def test_isolated_per_user(self, client, test_user_id):
        store_key(client, test_user_id)
        response = client.get("/keys", headers=auth_headers(uuid4()))
        assert response.json() == {"data": []}


# =============================================================================
# Key validation
# =============================================================================


class TestValidateKey:
    @respx.mock
    def test_valid_key(self, client, test_user_id):
        route = respx.get(OPENAI_MODELS_URL).mock(return_value=httpx.Response(200, json={"data": []}))

        response = client.post(
            "/keys/validate",
            json={"provider": "openai", "api_key": FAKE_OPENAI_KEY},
            headers=auth_headers(test_user_id),
        )

        assert response.status_code == 200
        assert response.json() == {"data": {"provider": "openai", "valid": True}}
        assert route.calls.last.request.headers["authorization"] == f"Bearer {FAKE_OPENAI_KEY}"

    @respx.mock
    def test_rejected_key_is_200_with_valid_false(self, client, test_user_id):
        respx.get(OPENAI_MODELS_URL).mock(return_value=httpx.Response(401))

        response = client.post(
            "/keys/validate",
            json={"provider": "openai", "api_key": FAKE_OPENAI_KEY},
            headers=auth_headers(test_user_id),
        )

        assert response.status_code == 200
        assert response.json()["data"]["valid"] is False

    def test_unknown_provider_is_400(self, client, test_user_id):
        response = client.post(
            "/keys/validate",
            json={"provider": "gemini", "api_key": FAKE_OPENAI_KEY},
            headers=auth_headers(test_user_id),
        )
        assert response.status_code == 400

    def test_validate_does_not_store(self, client, test_user_id):
        with respx.mock:
            respx.get(OPENAI_MODELS_URL).mock(return_value=httpx.Response(200, json={}))
            client.post(
                "/keys/validate",
                json={"provider": "openai", "api_key": FAKE_OPENAI_KEY},
                headers=auth_headers(test_user_id),
            )

        assert client.get("/keys", headers=auth_headers(test_user_id)).json() == {"data": []}


# =============================================================================
# Provider model listing
# =============================================================================


class TestProviderModels:
    @respx.mock
    def test_without_key_returns_common_models(self, client, test_user_id):
        response = client.get(
            "/keys/models", params={"provider": "anthropic"}, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 200
        assert response.json() == {
            "data": {"provider": "anthropic", "models": list(COMMON_ANTHROPIC_MODELS)}
        }

    @respx.mock
    def test_with_key_lists_vendor_models(self, client, test_user_id):
        route = respx.get(OPENAI_MODELS_URL).respond(
            200, json={"data": [{"id": "gpt-4o-mini"}, {"id": "gpt-4o"}]}
        )

        response = client.get(
            "/keys/models",
            params={"provider": "openai"},
            headers=auth_headers(test_user_id, **{"X-Provider-Key": FAKE_OPENAI_KEY}),
        )

        assert response.json()["data"]["models"] == ["gpt-4o", "gpt-4o-mini"]
        assert route.calls.last.request.headers["authorization"] == f"Bearer {FAKE_OPENAI_KEY}"

    @respx.mock
    def test_anthropic_key_uses_models_endpoint(self, client, test_user_id):
        route = respx.get("https://api.anthropic.com/v1/models").respond(
            200, json={"data": [{"id": "claude-sonnet-4-5"}]}
        )

        response = client.get(
            "/keys/models",
            params={"provider": "anthropic"},
            headers=auth_headers(test_user_id, **{"X-Provider-Key": FAKE_ANTHROPIC_KEY}),
        )

        assert response.json()["data"]["models"] == ["claude-sonnet-4-5"]
        assert route.calls.last.request.headers["x-api-key"] == FAKE_ANTHROPIC_KEY

    @respx.mock
    def test_base_url_override(self, client, test_user_id):
        route = respx.get("https://proxy.example/api/v1/models").respond(
            200, json={"data": [{"id": "meta/llama-test"}]}
        )

        response = client.get(
            "/keys/models",
            params={"provider": "openrouter", "baseUrl": "https://proxy.example/api/v1"},
            headers=auth_headers(test_user_id, **{"X-Provider-Key": FAKE_OPENROUTER_KEY}),
        )

        assert route.called
        assert response.json()["data"]["models"] == ["meta/llama-test"]

    @respx.mock
    def test_rejected_key_falls_back_to_common_models(self, client, test_user_id):
        respx.get(OPENAI_MODELS_URL).respond(401, json={"error": {"message": "bad key"}})

        response = client.get(
            "/keys/models",
            params={"provider": "openai"},
            headers=auth_headers(test_user_id, **{"X-Provider-Key": FAKE_OPENAI_KEY}),
        )

        assert response.status_code == 200
        assert response.json()["data"]["models"] == list(COMMON_OPENAI_MODELS)

    def test_provider_is_case_insensitive(self, client, test_user_id):
        response = client.get(
            "/keys/models", params={"provider": " OpenRouter "}, headers=auth_headers(test_user_id)
        )

        assert response.json()["data"]["provider"] == "openrouter"
        assert response.json()["data"]["models"] == list(COMMON_OPENROUTER_MODELS)

    def test_unknown_provider_is_400(self, client, test_user_id):
        response = client.get(
            "/keys/models", params={"provider": "gemini"}, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_KEY_PROVIDER_INVALID"

    def test_missing_provider_is_400(self, client, test_user_id):
        response = client.get("/keys/models", headers=auth_headers(test_user_id))
        assert response.status_code == 400


# =============================================================================
# Auth
# =============================================================================


class TestAuth:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/keys"),
            ("post", "/keys"),
            ("delete", "/keys/00000000-0000-0000-0000-000000000000"),
            ("post", "/keys/validate"),
            ("get", "/keys/models?provider=openai"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        response = client.request(method.upper(), path, json={})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"
