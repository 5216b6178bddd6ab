"""Tests for log guards and request-scoped logging context."""

import hashlib

import pytest

from mentormind.logging import (
    add_request_context,
    clear_request_context,
    get_request_id,
    set_model_id,
    set_request_context,
    set_user_id,
)
from mentormind.services.redact import FORBIDDEN_KEYS, hash_text, safe_kv

# =============================================================================
# hash_text
# =============================================================================


class TestHashText:
    def test_stable_output(self):
        assert hash_text("hello") == hash_text("hello")

    def test_different_inputs_differ(self):
        assert hash_text("hello") != hash_text("world")

    def test_is_sha256_hex(self):
        assert hash_text("hello") == hashlib.sha256(b"hello").hexdigest()
        assert len(hash_text("")) == 64


# =============================================================================
# safe_kv
# =============================================================================


class TestSafeKv:
    def test_allows_safe_keys(self):
        assert safe_kv(provider="openai", model_name="gpt-oss-120b") == {
            "provider": "openai",
            "model_name": "gpt-oss-120b",
        }

    def test_allows_redacted_suffix_keys(self):
        fields = safe_kv(prompt_chars=12, content_sha256="ab", messages_length=3)
        assert fields["prompt_chars"] == 12

    @pytest.mark.parametrize("key", sorted(FORBIDDEN_KEYS))
    def test_blocks_forbidden_keys_in_test(self, key):
        with pytest.raises(ValueError, match=key):
            safe_kv(_env="test", **{key: "x"})

    def test_local_also_blocks(self):
        with pytest.raises(ValueError):
            safe_kv(_env="local", api_key="sk-x")

    def test_prod_logs_and_passes_through(self):
        assert safe_kv(_env="prod", prompt="hi") == {"prompt": "hi"}


# =============================================================================
# Context vars
# =============================================================================


class TestContextVars:
    def setup_method(self):
        clear_request_context()

    def teardown_method(self):
        clear_request_context()

    def test_request_path_and_method_injected(self):
        set_request_context("req-1", path="/ai-helper", method="POST")

        event_dict = add_request_context(None, "info", {})

        assert event_dict == {"request_id": "req-1", "path": "/ai-helper", "method": "POST"}
        assert get_request_id() == "req-1"

    def test_user_and_model_injected(self):
        set_request_context("req-1")
        set_user_id("user-1")
        set_model_id("nova-lite")

        event_dict = add_request_context(None, "info", {})

        assert event_dict["user_id"] == "user-1"
        assert event_dict["model_id"] == "nova-lite"

    def test_explicit_fields_win(self):
        set_request_context("req-1")
        event_dict = add_request_context(None, "info", {"request_id": "explicit"})
        assert event_dict["request_id"] == "explicit"

    def test_none_values_not_injected(self):
        set_request_context("req-1")
        event_dict = add_request_context(None, "info", {})
        assert "path" not in event_dict
        assert "user_id" not in event_dict
        assert "model_id" not in event_dict

    def test_clear_clears_all(self):
        set_request_context("req-1", path="/keys", method="GET")
        set_user_id("user-1")
        set_model_id("m")

        clear_request_context()

        assert add_request_context(None, "info", {}) == {}
        assert get_request_id() is None
