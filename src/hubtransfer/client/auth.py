"""Bearer credential lookup.

This module provides:
- resolve_token: Find the hub token (argument, env, token file, keyring)
- store_token / clear_token: Cache the token in the OS keyring
"""

from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path

import keyring

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "hubtransfer"
KEYRING_USERNAME = "hub-token"
TOKEN_ENV_VAR = "HF_TOKEN"
TOKEN_FILE_NAME = "token"


def default_home() -> Path:
    """Directory holding the stored token file (HF_HOME or ~/.cache/huggingface)."""
    if os.environ.get("HF_HOME"):
        return Path(os.environ["HF_HOME"]).expanduser()
    return Path.home() / ".cache" / "huggingface"


def _read_token_file(home: Path) -> str | None:
    token_file = home / TOKEN_FILE_NAME
    try:
        token = token_file.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return token or None


def resolve_token(explicit: str | None = None, home: Path | None = None) -> str | None:
    """Resolve the bearer token used for hub requests.

    Checks in order:
    1. Explicit argument
    2. HF_TOKEN environment variable
    3. Token file in HF_HOME
    4. OS keyring

    Args:
        explicit: Token passed by the caller.
        home: Directory containing the token file (defaults to HF_HOME).

    Returns:
        The token, or None for anonymous access.
    """
    if explicit:
        return explicit

    env_token = os.environ.get(TOKEN_ENV_VAR, "").strip()
    if env_token:
        return env_token

    file_token = _read_token_file(home or default_home())
    if file_token:
        return file_token

    # Keyring is only a cache; a missing or broken backend means no token
    cached: str | None = None
    with contextlib.suppress(Exception):
        cached = keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    if cached:
        logger.debug("Using token from OS keyring")
    return cached or None


def store_token(token: str) -> bool:
    """Cache a token in the OS keyring.

    Returns:
        True if the keyring accepted the token.
    """
    try:
        keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, token)
    except Exception as e:
        logger.warning(f"Could not store token in keyring: {e}")
        return False
    return True


def clear_token() -> None:
    """Remove the cached token from the OS keyring."""
    with contextlib.suppress(Exception):
        keyring.delete_password(KEYRING_SERVICE, KEYRING_USERNAME)
