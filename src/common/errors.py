from __future__ import annotations

import json
from typing import Any, List, Optional

from pydantic import BaseModel, ValidationError


class KeylessFlowError(RuntimeError):
    """Base error for the keyless flow."""


class UnsupportedProviderError(KeylessFlowError):
    """The requested identity provider has no registered authorization endpoint."""

    def __init__(self, provider: object) -> None:
        super().__init__(f"Invalid provider: {provider}")
        self.provider = provider


class UnsupportedNetworkError(KeylessFlowError):
    """No network configuration is known for the requested network."""

    def __init__(self, network: object) -> None:
        super().__init__(f"Unsupported or undefined network: {network}")
        self.network = network


class SessionNotFoundError(KeylessFlowError):
    """A step ran without the sign-in flow it depends on having been started."""


class InvalidTokenError(KeylessFlowError):
    """The identity token is missing, malformed, or lacks required claims."""


class MissingProofInputsError(KeylessFlowError):
    """Pepper, identity token or ephemeral key pair is missing for proof issuance."""


class NotAuthenticatedError(KeylessFlowError):
    """The session holds no identity token."""


class NoAccountError(KeylessFlowError):
    """The session holds no derived account."""


class ExpiredProofError(KeylessFlowError):
    """The cached proof has expired and must not be reused."""


class DecryptionError(KeylessFlowError):
    """Stored ciphertext could not be decrypted (tampered or wrong key)."""


class RemoteErrorDetail(BaseModel):
    code: str
    message: str
    data: Any = None


def _parse_error_list(body: str) -> List[RemoteErrorDetail]:
    # Best-effort: services return {"errors": [{code, message, data}]}
    try:
        raw = json.loads(body)
    except ValueError:
        return []
    if not isinstance(raw, dict) or not isinstance(raw.get("errors"), list):
        return []
    out: List[RemoteErrorDetail] = []
    for item in raw["errors"]:
        try:
            out.append(RemoteErrorDetail.model_validate(item))
        except ValidationError:
            continue
    return out


class RemoteServiceError(KeylessFlowError):
    """The remote service answered with a non-2xx status or an unusable payload.

    `errors` carries the structured error list when the body could be parsed;
    otherwise it is empty and only `status` is reported.
    """

    def __init__(
        self,
        status: int,
        errors: Optional[List[RemoteErrorDetail]] = None,
        *,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(message or f"Request to keyless API failed (status: {status})")
        self.status = status
        self.errors: List[RemoteErrorDetail] = list(errors or [])

    @property
    def cause_message(self) -> Optional[str]:
        return self.errors[0].message if self.errors else None

    @classmethod
    def from_response(cls, status: int, body: str) -> "RemoteServiceError":
        return cls(status, _parse_error_list(body))


__all__ = [
    "KeylessFlowError",
    "UnsupportedProviderError",
    "UnsupportedNetworkError",
    "SessionNotFoundError",
    "InvalidTokenError",
    "MissingProofInputsError",
    "NotAuthenticatedError",
    "NoAccountError",
    "ExpiredProofError",
    "DecryptionError",
    "RemoteErrorDetail",
    "RemoteServiceError",
]
