from __future__ import annotations
"""Format checks for credentials entered on the login screen."""
import re
from typing import Optional

ACCESS_KEY_ID_LENGTH = 32
SECRET_ACCESS_KEY_LENGTH = 64

_HEX_RE = re.compile(r"[0-9a-fA-F]+")

ENDPOINT_REQUIRED = "Endpoint is required."
INVALID_ACCESS_KEY_ID = "Invalid Access Key ID. Must be a 32-character hex string."
ACCESS_KEY_LOOKS_LIKE_TOKEN = (
    "Invalid Access Key ID. This looks like an API token rather than an S3 Access Key ID."
)
INVALID_SECRET_ACCESS_KEY = "Invalid Secret Access Key. Must be a 64-character hex string."


def is_hex(value: str, length: int) -> bool:
    return len(value) == length and _HEX_RE.fullmatch(value) is not None


def validate_credentials(access_key_id: str, secret_access_key: str) -> Optional[str]:
    """Return a diagnostic for malformed keys, or ``None`` when both look valid."""

    if not is_hex(access_key_id, ACCESS_KEY_ID_LENGTH):
        if "_" in access_key_id or "-" in access_key_id or len(access_key_id) > ACCESS_KEY_ID_LENGTH:
            return ACCESS_KEY_LOOKS_LIKE_TOKEN
        return INVALID_ACCESS_KEY_ID
    if not is_hex(secret_access_key, SECRET_ACCESS_KEY_LENGTH):
        return INVALID_SECRET_ACCESS_KEY
    return None


def validate_endpoint(endpoint: str) -> Optional[str]:
    if not endpoint.strip():
        return ENDPOINT_REQUIRED
    return None
