# apps/api/reservation/token.py

"""
Scannable code format.

The code printed for a reservation is a JSON object carrying only the opaque
session token, so its validity depends solely on the reservation's current
status::

    {"sessionToken": "3f0c..."}

Codes printed by older releases used ``{"qr_key": ...}``. They are still
accepted, but only through :func:`migrate_scan_payload`, which rewrites them
to the current shape before any lookup happens.
"""

import logging
import uuid
from typing import Any, Dict, Union

import orjson

from apps.api.reservation.exceptions import InvalidScanCode

logger = logging.getLogger(__name__)

SCAN_CODE_VERSION = 1
TOKEN_FIELD = "sessionToken"
LEGACY_TOKEN_FIELD = "qr_key"


def new_session_token() -> str:
    return str(uuid.uuid4())


def encode_scan_code(session_token: str) -> str:
    return orjson.dumps({TOKEN_FIELD: session_token}).decode()


def payload_version(payload: Dict[str, Any]) -> int:
    if TOKEN_FIELD in payload:
        return 1
    if LEGACY_TOKEN_FIELD in payload:
        return 0
    raise InvalidScanCode("Scan code does not carry a session token.")


def migrate_scan_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Bring a decoded payload up to the current version."""
    version = payload_version(payload)
    if version == SCAN_CODE_VERSION:
        return payload
    logger.warning(
        f"Accepted deprecated v{version} scan code; reprint the reservation code"
    )
    return {TOKEN_FIELD: payload[LEGACY_TOKEN_FIELD]}


def decode_scan_code(raw: Union[str, bytes, Dict[str, Any]]) -> str:
    """
    Return the session token carried by a scanned code.

    Accepts the raw scanned text or an already parsed object. A bare token
    string (no JSON) is accepted as well, since handheld scanners in manual
    entry mode send only the token.
    """
    if isinstance(raw, dict):
        payload = raw
    else:
        text = raw.decode() if isinstance(raw, bytes) else raw
        text = text.strip()
        if not text:
            raise InvalidScanCode("Empty scan code.")
        if not text.startswith("{"):
            return _validated_token(text)
        try:
            payload = orjson.loads(text)
        except orjson.JSONDecodeError:
            raise InvalidScanCode("Scan code is not valid JSON.")
        if not isinstance(payload, dict):
            raise InvalidScanCode("Scan code must be an object.")

    payload = migrate_scan_payload(payload)
    return _validated_token(payload[TOKEN_FIELD])


def _validated_token(value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidScanCode("Session token must be a string.")
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError:
        raise InvalidScanCode("Session token is malformed.")
