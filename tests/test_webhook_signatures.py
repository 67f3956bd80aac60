"""
Webhook signature validation tests.
These protect the authentication boundary for all inbound Meta deliveries.
"""
import hashlib
import hmac
import logging
from unittest.mock import patch

import pytest

from src.utils.webhook_signatures import (
    SHA256_HEX_LENGTH,
    compute_payload_hash,
    validate_meta_signature,
)

SECRET = "my_app_secret"
BODY = b'{"object":"page","entry":[{"id":"1","time":1,"changes":[]}]}'


def _header(body: bytes, secret: str = SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestValidateMetaSignature:
    def test_valid_signature(self):
        assert validate_meta_signature(SECRET, _header(BODY), BODY) is True

    def test_uppercase_hex_digest_accepted(self):
        header = "sha256=" + _header(BODY)[len("sha256="):].upper()
        assert validate_meta_signature(SECRET, header, BODY) is True

    def test_wrong_secret_rejected(self):
        assert validate_meta_signature(SECRET, _header(BODY, "other_secret"), BODY) is False

    def test_tampered_body_rejected_with_original_header(self):
        header = _header(BODY)
        for i in range(len(BODY)):
            tampered = bytearray(BODY)
            tampered[i] ^= 0x01
            assert validate_meta_signature(SECRET, header, bytes(tampered)) is False

    def test_reserialized_body_rejected(self):
        """Whitespace differences matter: only the exact received bytes verify."""
        header = _header(BODY)
        reserialized = b'{"object": "page", "entry": [{"id": "1", "time": 1, "changes": []}]}'
        assert validate_meta_signature(SECRET, header, reserialized) is False

    def test_empty_secret_fails_closed(self):
        assert validate_meta_signature("", _header(BODY), BODY) is False

    def test_none_secret_fails_closed(self):
        assert validate_meta_signature(None, _header(BODY), BODY) is False

    def test_length_mismatch_rejected(self):
        assert validate_meta_signature(SECRET, "sha256=" + "a" * 63, BODY) is False
        assert validate_meta_signature(SECRET, "sha256=" + "a" * 65, BODY) is False

    def test_non_hex_digest_rejected(self):
        assert validate_meta_signature(SECRET, "sha256=" + "z" * SHA256_HEX_LENGTH, BODY) is False

    @pytest.mark.parametrize(
        "signature",
        [None, "", "sha1=" + "a" * 40, "SHA256=" + "a" * 64, "sha256=", "a" * 64],
    )
    def test_missing_or_malformed_header_never_hashes(self, signature):
        with patch("src.utils.webhook_signatures.hmac") as mock_hmac:
            assert validate_meta_signature(SECRET, signature, BODY) is False
        mock_hmac.new.assert_not_called()
        mock_hmac.compare_digest.assert_not_called()

    def test_missing_secret_never_hashes(self):
        with patch("src.utils.webhook_signatures.hmac") as mock_hmac:
            assert validate_meta_signature("", _header(BODY), BODY) is False
        mock_hmac.new.assert_not_called()

    def test_length_mismatch_never_hashes(self):
        with patch("src.utils.webhook_signatures.hmac") as mock_hmac:
            assert validate_meta_signature(SECRET, "sha256=abc", BODY) is False
        mock_hmac.new.assert_not_called()

    def test_uses_constant_time_compare(self):
        with patch(
            "src.utils.webhook_signatures.hmac.compare_digest", return_value=True
        ) as mock_compare:
            assert validate_meta_signature(SECRET, _header(BODY), BODY) is True
        mock_compare.assert_called_once()

    @pytest.mark.parametrize(
        "secret,signature,reason",
        [
            (SECRET, None, "missing_header"),
            ("", "sha256=" + "a" * 64, "missing_secret"),
            (SECRET, "md5=abc", "malformed_header"),
            (SECRET, "sha256=abc", "length_mismatch"),
            (SECRET, "sha256=" + "a" * 64, "hash_mismatch"),
        ],
    )
    def test_logs_reason_category(self, caplog, secret, signature, reason):
        with caplog.at_level(logging.WARNING, logger="src.utils.webhook_signatures"):
            validate_meta_signature(secret, signature, BODY)
        assert [r.reason for r in caplog.records] == [reason]

    def test_never_logs_secret_or_digests(self, caplog):
        header = _header(BODY, "attacker_secret")
        expected = _header(BODY)[len("sha256="):]
        with caplog.at_level(logging.DEBUG):
            validate_meta_signature(SECRET, header, BODY)
        for record in caplog.records:
            message = record.getMessage()
            assert SECRET not in message
            assert header[len("sha256="):] not in message
            assert expected not in message


class TestComputePayloadHash:
    def test_consistent_hash(self):
        body = b'{"test": true}'
        h1 = compute_payload_hash(body)
        h2 = compute_payload_hash(body)
        assert h1 == h2
        assert len(h1) == 64  # SHA-256 hex digest

    def test_different_payloads_different_hashes(self):
        assert compute_payload_hash(b"a") != compute_payload_hash(b"b")
