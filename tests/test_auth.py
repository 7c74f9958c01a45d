"""
Unit tests for MAuth request signing.
"""

import base64
import hashlib
import hmac
import re

import pytest

from ics_rest import AuthError, AuthSigner, calculate_signature
from ics_rest.auth import (
    create_auth_context,
    decode_base64,
    encode_base64,
    format_auth_header,
    new_cnonce,
)

HEADER_PATTERN = re.compile(
    r"^MAuth realm=http://marte3\.dit\.upm\.es,"
    r"mauth_signature_method=HMAC_SHA256,"
    r"mauth_serviceid=(?P<service>[^,]+),"
    r"mauth_cnonce=(?P<cnonce>[0-9a-f]+),"
    r"mauth_timestamp=(?P<timestamp>\d+),"
    r"mauth_signature=(?P<signature>[A-Za-z0-9+/=]+)$"
)


class TestSignature:
    """Test signature computation."""

    def test_signature_encodes_hex_digest_text(self):
        """The base64 step applies to the hex digest string, not the raw digest."""
        expected_hex = hmac.new(b"21989", b"1500000000000,0011223344556677", hashlib.sha256).hexdigest()
        expected = base64.b64encode(expected_hex.encode("ascii")).decode("ascii")

        assert calculate_signature("1500000000000,0011223344556677", "21989") == expected

    def test_signature_deterministic(self):
        """Identical inputs give byte-identical signatures."""
        first = create_auth_context("svc", "key", timestamp="1500000000000", cnonce="aabbccddeeff0011")
        second = create_auth_context("svc", "key", timestamp="1500000000000", cnonce="aabbccddeeff0011")

        assert first.signature == second.signature
        assert format_auth_header(first) == format_auth_header(second)

    @pytest.mark.parametrize(
        "changes",
        [
            {"timestamp": "1500000000001"},
            {"cnonce": "aabbccddeeff0012"},
            {"key": "other-key"},
        ],
    )
    def test_signature_changes_with_any_input(self, changes):
        """Changing timestamp, nonce or key changes the signature."""
        base = {"service": "svc", "key": "key", "timestamp": "1500000000000", "cnonce": "aabbccddeeff0011"}
        original = create_auth_context(**base)
        changed = create_auth_context(**{**base, **changes})

        assert original.signature != changed.signature


class TestAuthHeader:
    """Test header construction."""

    def test_header_field_order(self):
        """Header fields appear in the fixed order the server parses."""
        signer = AuthSigner("5188b9af6e53c84ffd600413", "21989")
        header = signer.sign(timestamp="1500000000000", cnonce="0011223344556677")

        assert header == (
            "MAuth realm=http://marte3.dit.upm.es,mauth_signature_method=HMAC_SHA256"
            ",mauth_serviceid=5188b9af6e53c84ffd600413"
            ",mauth_cnonce=0011223344556677"
            ",mauth_timestamp=1500000000000"
            ",mauth_signature=" + calculate_signature("1500000000000,0011223344556677", "21989")
        )

    def test_generated_header_parses(self):
        """A freshly generated header carries a numeric timestamp and hex nonce."""
        header = AuthSigner("svc", "key").sign()
        match = HEADER_PATTERN.match(header)

        assert match is not None
        assert match.group("service") == "svc"
        assert len(match.group("cnonce")) == 16
        assert match.group("signature") == calculate_signature(
            f"{match.group('timestamp')},{match.group('cnonce')}", "key"
        )

    def test_unique_nonces(self):
        """Each call gets a new nonce."""
        assert new_cnonce() != new_cnonce()

    def test_context_does_not_expose_key(self):
        ctx = create_auth_context("svc", "super-secret")
        assert "super-secret" not in repr(ctx)

    @pytest.mark.parametrize("service,key", [("", "key"), ("svc", ""), (None, "key")])
    def test_missing_configuration(self, service, key):
        """Signing without a service id or key fails immediately."""
        with pytest.raises(AuthError) as exc_info:
            AuthSigner(service, key).sign()

        assert exc_info.value.code == "NOT_INITIALIZED"
        assert exc_info.value.status == 401


@pytest.mark.parametrize("data", [b"", b"x", b"abcd", b"\x00\xff\x10\x80\x7f"])
def test_base64_round_trip(data):
    """Round trips hold for empty, single-byte and non-multiple-of-3 inputs."""
    assert decode_base64(encode_base64(data)) == data
    text = encode_base64(data)
    assert encode_base64(decode_base64(text)) == text
