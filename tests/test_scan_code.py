"""Tests for the scannable code format and its legacy migration."""

import logging
import uuid

import orjson
import pytest

from apps.api.reservation.exceptions import InvalidScanCode
from apps.api.reservation.token import (
    decode_scan_code,
    encode_scan_code,
    migrate_scan_payload,
    new_session_token,
    payload_version,
)


class TestEncode:
    def test_code_carries_only_the_token(self):
        token = new_session_token()

        payload = orjson.loads(encode_scan_code(token))

        assert payload == {"sessionToken": token}

    def test_tokens_are_unique_uuid4_strings(self):
        tokens = {new_session_token() for _ in range(50)}

        assert len(tokens) == 50
        assert all(uuid.UUID(t).version == 4 for t in tokens)


class TestDecode:
    def test_current_shape_from_text(self):
        token = new_session_token()

        assert decode_scan_code(encode_scan_code(token)) == token

    def test_current_shape_from_object(self):
        token = new_session_token()

        assert decode_scan_code({"sessionToken": token}) == token

    def test_bare_token(self):
        token = new_session_token()

        assert decode_scan_code(f"  {token}\n") == token

    def test_legacy_shape_is_migrated_with_a_warning(self, caplog):
        token = new_session_token()

        with caplog.at_level(logging.WARNING, logger="apps.api.reservation.token"):
            assert decode_scan_code(orjson.dumps({"qr_key": token})) == token

        assert "deprecated" in caplog.text

    def test_reservation_id_payload_is_rejected(self):
        with pytest.raises(InvalidScanCode):
            decode_scan_code('{"reservationId": 42}')

    @pytest.mark.parametrize(
        "raw",
        ["", "   ", "{not json", "[1, 2]", '{"sessionToken": 5}', '{"sessionToken": "nope"}', "nope"],
    )
    def test_garbage_is_rejected(self, raw):
        with pytest.raises(InvalidScanCode) as exc_info:
            decode_scan_code(raw)

        assert exc_info.value.error_code == "INVALID_SCAN_CODE"


class TestMigration:
    def test_versions(self):
        assert payload_version({"sessionToken": "x"}) == 1
        assert payload_version({"qr_key": "x"}) == 0

    def test_current_payload_is_untouched(self):
        payload = {"sessionToken": "abc"}

        assert migrate_scan_payload(payload) is payload

    def test_legacy_payload_is_rewritten(self):
        assert migrate_scan_payload({"qr_key": "abc"}) == {"sessionToken": "abc"}
