"""Tests for Slack signature verification.

Tests:
- Signature format and known-answer vector
- Constant-time comparison
- Single-byte mutations of body, timestamp or secret are rejected (property)
- Missing inputs fail closed without raising
- Timestamp freshness window
- verify_request header lookup and ConfigurationError
"""

from __future__ import annotations

import hashlib
import hmac
from unittest.mock import patch

import pytest
from freezegun import freeze_time
from hypothesis import given, settings as hyp_settings
from hypothesis import strategies as st

from speckit_bot.config import Settings
from speckit_bot.errors import ConfigurationError
from speckit_bot.webhooks.models import InboundWebhookRequest
from speckit_bot.webhooks.verification import (
    compute_signature,
    is_fresh,
    verify,
    verify_request,
)

BODY = b"token=abc&text=hello&user_id=U1&channel_id=C1"
TS = "1700000000"


def _mutate(data: bytes, index: int, delta: int) -> bytes:
    """Replace one byte with a different value."""
    index %= len(data)
    changed = (data[index] + delta) % 256
    return data[:index] + bytes([changed]) + data[index + 1 :]


# ── Signature computation ────────────────────────────────────────────────


class TestComputeSignature:
    """v0 signature over 'v0:<timestamp>:<body>'."""

    def test_known_vector(self):
        expected = hmac.new(
            b"shhh",
            b"v0:1700000000:token=abc&text=hello&user_id=U1&channel_id=C1",
            hashlib.sha256,
        ).hexdigest()
        assert compute_signature(BODY, TS, "shhh") == f"v0={expected}"

    def test_prefix_and_hex_length(self):
        sig = compute_signature(b"x", "1", "s")
        assert sig.startswith("v0=")
        assert len(sig) == 3 + 64
        int(sig[3:], 16)

    def test_body_bytes_used_verbatim(self):
        """Body is not re-encoded: non-UTF-8 bytes still sign."""
        body = b"\xff\xfe raw"
        expected = hmac.new(b"s", b"v0:1:" + body, hashlib.sha256).hexdigest()
        assert compute_signature(body, "1", "s") == f"v0={expected}"

    def test_str_and_bytes_inputs_agree(self):
        assert compute_signature(BODY, TS, "shhh") == compute_signature(BODY, TS.encode(), b"shhh")


# ── verify() ─────────────────────────────────────────────────────────────


class TestVerify:
    """verify() accepts exact signatures and fails closed on everything else."""

    def test_valid_signature(self):
        sig = compute_signature(BODY, TS, "shhh")
        assert verify(BODY, TS, sig, "shhh") is True

    def test_invalid_signature(self):
        assert verify(BODY, TS, "v0=deadbeef", "shhh") is False

    def test_wrong_version_prefix(self):
        sig = compute_signature(BODY, TS, "shhh").replace("v0=", "v1=")
        assert verify(BODY, TS, sig, "shhh") is False

    def test_tampered_body(self):
        sig = compute_signature(BODY, TS, "shhh")
        assert verify(BODY + b"&x=1", TS, sig, "shhh") is False

    @pytest.mark.parametrize(
        "timestamp, signature, secret",
        [
            (None, "v0=abc", "shhh"),
            ("", "v0=abc", "shhh"),
            (TS, None, "shhh"),
            (TS, "", "shhh"),
            (TS, "v0=abc", None),
            (TS, "v0=abc", ""),
        ],
    )
    def test_missing_inputs_return_false(self, timestamp, signature, secret):
        assert verify(BODY, timestamp, signature, secret) is False

    def test_non_ascii_signature_does_not_raise(self):
        assert verify(BODY, TS, "v0=é", "shhh") is False

    def test_uses_constant_time_comparison(self):
        """Comparison goes through hmac.compare_digest, not ==."""
        sig = compute_signature(BODY, TS, "shhh")
        with patch(
            "speckit_bot.webhooks.verification.hmac.compare_digest",
            wraps=hmac.compare_digest,
        ) as spy:
            assert verify(BODY, TS, sig, "shhh") is True
            assert verify(BODY, TS, "v0=" + "0" * 64, "shhh") is False
        assert spy.call_count == 2

    @given(
        body=st.binary(min_size=1, max_size=256),
        ts=st.integers(min_value=0, max_value=2**40).map(str),
        secret=st.binary(min_size=1, max_size=80),
        index=st.integers(min_value=0, max_value=10_000),
        delta=st.integers(min_value=1, max_value=255),
    )
    @hyp_settings(max_examples=75, deadline=None)
    def test_single_byte_mutations_rejected(self, body, ts, secret, index, delta):
        """Correct secret verifies; any one-byte change to body/timestamp/secret does not."""
        sig = compute_signature(body, ts, secret)
        assert verify(body, ts, sig, secret) is True

        assert verify(_mutate(body, index, delta), ts, sig, secret) is False
        assert verify(body, _mutate(ts.encode(), index, delta), sig, secret) is False
        assert verify(body, ts, sig, _mutate(secret, index, delta)) is False


# ── Freshness ────────────────────────────────────────────────────────────


class TestFreshness:
    """Optional replay window on the request timestamp."""

    def test_within_tolerance(self):
        assert is_fresh("1700000000", 300, now=1700000200) is True

    def test_past_outside_tolerance(self):
        assert is_fresh("1700000000", 300, now=1700000301) is False

    def test_future_outside_tolerance(self):
        assert is_fresh("1700000400", 300, now=1700000000) is False

    def test_non_numeric_timestamp(self):
        assert is_fresh("yesterday", 300, now=1700000000) is False

    def test_verify_rejects_stale_with_tolerance(self):
        sig = compute_signature(BODY, TS, "shhh")
        assert verify(BODY, TS, sig, "shhh", tolerance=300, now=1700000600) is False

    def test_verify_ignores_age_without_tolerance(self):
        sig = compute_signature(BODY, TS, "shhh")
        assert verify(BODY, TS, sig, "shhh", now=1800000000) is True

    @freeze_time("2023-11-14 22:15:00")  # 1700000100
    def test_verify_uses_wall_clock(self):
        sig = compute_signature(BODY, TS, "shhh")
        assert verify(BODY, TS, sig, "shhh", tolerance=300) is True


# ── verify_request() ─────────────────────────────────────────────────────


def _request(headers: dict[str, str], received_at: float = 1700000000.0) -> InboundWebhookRequest:
    return InboundWebhookRequest(body=BODY, headers=headers, received_at=received_at, path="/slack/specify")


class TestVerifyRequest:
    """Header lookup and configuration handling."""

    def _settings(self, secret: str = "shhh", tolerance: int = 300) -> Settings:
        return Settings(_env_file=None, slack_signing_secret=secret, timestamp_tolerance=tolerance)

    def test_slack_headers(self):
        req = _request(
            {
                "X-Slack-Signature": compute_signature(BODY, TS, "shhh"),
                "X-Slack-Request-Timestamp": TS,
            }
        )
        assert verify_request(req, self._settings()) is True

    def test_generic_headers(self):
        req = _request(
            {
                "X-Signature": compute_signature(BODY, TS, "shhh"),
                "X-Request-Timestamp": TS,
            }
        )
        assert verify_request(req, self._settings()) is True

    def test_missing_headers(self):
        assert verify_request(_request({}), self._settings()) is False

    def test_stale_request_rejected(self):
        req = _request(
            {
                "X-Slack-Signature": compute_signature(BODY, TS, "shhh"),
                "X-Slack-Request-Timestamp": TS,
            },
            received_at=1700001000.0,
        )
        assert verify_request(req, self._settings()) is False

    def test_zero_tolerance_disables_freshness(self):
        req = _request(
            {
                "X-Slack-Signature": compute_signature(BODY, TS, "shhh"),
                "X-Slack-Request-Timestamp": TS,
            },
            received_at=1800000000.0,
        )
        assert verify_request(req, self._settings(tolerance=0)) is True

    def test_missing_secret_raises_configuration_error(self):
        req = _request({"X-Slack-Signature": "v0=abc", "X-Slack-Request-Timestamp": TS})
        with pytest.raises(ConfigurationError):
            verify_request(req, self._settings(secret=""))

    def test_secret_never_logged(self, caplog):
        req = _request({"X-Slack-Signature": "v0=bad", "X-Slack-Request-Timestamp": TS})
        with caplog.at_level("DEBUG"):
            verify_request(req, self._settings(secret="super-secret-value"))
        assert "super-secret-value" not in caplog.text
        assert compute_signature(BODY, TS, "super-secret-value") not in caplog.text
