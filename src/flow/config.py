from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from common.keyless_api import DEFAULT_API_URL


# Environment variable names for convenience configuration
ENV_API_KEY = "KEYLESS_API_KEY"
ENV_API_URL = "KEYLESS_API_URL"
ENV_ENCRYPTION_KEY = "KEYLESS_ENCRYPTION_KEY"
ENV_STATE_FILE = "KEYLESS_STATE_FILE"
ENV_HTTP_TIMEOUT = "KEYLESS_HTTP_TIMEOUT"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


@dataclass(frozen=True)
class FlowConfig:
    """
    Settings for a `KeylessFlow`.

    - api_key: bearer key for the keyless service; also namespaces storage keys.
    - encryption_key: secret for encrypting the stored session. Falls back to
      `api_key` when unset.
    - state_file: when set, state is persisted in this JSON file instead of memory.
    """

    api_key: str
    api_url: str = DEFAULT_API_URL
    encryption_key: Optional[str] = None
    timeout: float = 15.0
    state_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "FlowConfig":
        api_key = _getenv(ENV_API_KEY)
        if not api_key:
            raise RuntimeError(
                f"Missing required environment variables for keyless flow: {ENV_API_KEY}"
            )
        timeout_raw = _getenv(ENV_HTTP_TIMEOUT)
        try:
            timeout = float(timeout_raw) if timeout_raw else 15.0
        except ValueError:
            raise RuntimeError(f"Invalid {ENV_HTTP_TIMEOUT}: {timeout_raw!r}") from None
        return cls(
            api_key=api_key,
            api_url=_getenv(ENV_API_URL, DEFAULT_API_URL) or DEFAULT_API_URL,
            encryption_key=_getenv(ENV_ENCRYPTION_KEY),
            timeout=timeout,
            state_file=_getenv(ENV_STATE_FILE),
        )


__all__ = ["FlowConfig"]
