from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from common.networks import Network


class Provider(str, Enum):
    """Identity providers the flow knows about (not all are wired up)."""

    GOOGLE = "google"
    FACEBOOK = "facebook"
    TWITCH = "twitch"


class _Persisted(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> str:
        """Compact JSON with camelCase keys; unset fields are omitted."""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, data: str | bytes):
        return cls.model_validate_json(data)


class ProfileState(_Persisted):
    """
    Durable login profile, stored as plain JSON.

    Fields
    - provider: identity provider the last sign-in started with.
    - address: derived account address, set once the callback is handled.
    - pepper: base64 pepper used for derivation; always set together with `address`.

    Holds no bearer secrets, so it is never encrypted.
    """

    provider: Optional[Provider] = None
    address: Optional[str] = None
    pepper: Optional[str] = None

    @model_validator(mode="after")
    def check_address_and_pepper(self) -> "ProfileState":
        if (self.address is None) != (self.pepper is None):
            raise ValueError("address and pepper must be set together")
        return self

    def is_empty(self) -> bool:
        return self.provider is None and self.address is None and self.pepper is None


class SessionState(_Persisted):
    """
    State tied to one sign-in attempt, encrypted at rest.

    Fields
    - ephemeral_key_pair: base64 ephemeral key material generated at login start.
    - expires_at: expiry of the ephemeral key pair, milliseconds since epoch.
      A cached proof shares this expiry.
    - nonce: nonce embedded in the ephemeral key material and sent to the
      identity provider; the returned token must echo it.
    - network: network chosen when the sign-in started.
    - jwt: identity token returned by the provider.
    - proof: opaque zero-knowledge proof object, cached after issuance.
    - keyless_account: base64 derived-account material.
    """

    ephemeral_key_pair: Optional[str] = None
    expires_at: Optional[int] = None
    nonce: Optional[str] = None
    network: Optional[Network] = None
    jwt: Optional[str] = None
    proof: Optional[Dict[str, Any]] = None
    keyless_account: Optional[str] = None

    def is_expired(self, now_ms: int) -> bool:
        return self.expires_at is not None and now_ms > self.expires_at


class SessionHolder(BaseModel):
    """Session value plus whether it has been loaded from storage yet."""

    model_config = ConfigDict(frozen=True)

    initialized: bool = False
    value: Optional[SessionState] = Field(default=None)


__all__ = ["Provider", "ProfileState", "SessionState", "SessionHolder"]
