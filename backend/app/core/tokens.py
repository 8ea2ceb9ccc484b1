"""
Opaque session token generation and format validation.

Two formats are accepted:
    - composite: ``sess_<userId>_<64 hex chars>`` (issued today)
    - legacy: a bare 64 character hex string

Validation is a pure pre-filter run before any session lookup.
"""

import re
import secrets

TOKEN_BYTES = 32
TOKEN_PREFIX = "sess_"

_HEX_64 = r"[0-9a-f]{64}"
_LEGACY_RE = re.compile(_HEX_64)
_COMPOSITE_RE = re.compile(rf"{TOKEN_PREFIX}[0-9]+_{_HEX_64}")


def generate_token_hex() -> str:
    """32 random bytes, hex encoded (64 lowercase characters)."""
    return secrets.token_hex(TOKEN_BYTES)


def generate_session_token(user_id: int) -> str:
    """Issue a composite token bound to ``user_id``."""
    return f"{TOKEN_PREFIX}{int(user_id)}_{generate_token_hex()}"


def is_valid_format(token) -> bool:
    """
    Check that ``token`` looks like something we could have issued.

    Never touches the database. Rejects non-strings, empty strings,
    uppercase or non-hex characters, wrong lengths and malformed prefixes.
    """
    if not isinstance(token, str) or not token:
        return False
    if token.startswith(TOKEN_PREFIX):
        return _COMPOSITE_RE.fullmatch(token) is not None
    return _LEGACY_RE.fullmatch(token) is not None
