from __future__ import annotations

import re
from typing import Any

from loguru import logger

TOKEN_PREFIX = "ExponentPushToken["
TOKEN_SUFFIX = "]"

# Prefixes the Expo SDK itself accepts
_EXPO_TOKEN_PREFIXES = ("ExponentPushToken[", "ExpoPushToken[")
_UUID_TOKEN = re.compile(
    r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE
)


def is_expo_push_token(token: Any) -> bool:
    """Expo SDK token rule: bracketed Exponent/Expo token or a bare UUID."""
    if not isinstance(token, str):
        return False
    if token.startswith(_EXPO_TOKEN_PREFIXES) and token.endswith(TOKEN_SUFFIX):
        return True
    return bool(_UUID_TOKEN.match(token))


def has_token_envelope(token: Any) -> bool:
    """Check the ``ExponentPushToken[...]`` wrapper around a non-empty id."""
    if not isinstance(token, str):
        return False
    if not (token.startswith(TOKEN_PREFIX) and token.endswith(TOKEN_SUFFIX)):
        return False
    return len(token) > len(TOKEN_PREFIX) + len(TOKEN_SUFFIX)


def is_valid_token(token: Any) -> bool:
    """Return True if ``token`` can be delivered to by the push gateway.

    Never raises; any failure inside the check counts as invalid.
    """
    if not token:
        return False
    try:
        is_valid = has_token_envelope(token) and is_expo_push_token(token)
    except Exception as e:
        logger.error(f"Invalid push token {token!r}: {e}")
        return False
    logger.debug(f"Token validation result for {token}: {is_valid}")
    return is_valid
