from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import RemoteServiceError
from .networks import Network


logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3000"
API_VERSION = "v1"
KEYLESS_HEADER = "keyless-jwt"


@dataclass(frozen=True)
class JwtAuth:
    """Sponsorship authorized by the caller's identity token."""

    jwt: str


@dataclass(frozen=True)
class SenderAuth:
    """Sponsorship authorized for an explicit sender, optionally restricted."""

    sender: str
    allowed_addresses: Optional[List[str]] = field(default=None)
    allowed_move_call_targets: Optional[List[str]] = field(default=None)


SponsorAuth = Union[JwtAuth, SenderAuth]


class SponsoredTransactionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sponsor_auth_bytes_base64: str = Field(..., alias="sponsorAuthBytesBase64")
    sponsor_signed_transaction_bytes_base64: str = Field(
        ..., alias="sponsorSignedTransactionBytesBase64"
    )


class KeylessApiClient:
    """
    Low-level async client for the keyless proof and sponsorship service.

    Notes
    - Every request carries the API key as a bearer token and a fresh
      `Request-Id`.
    - Non-2xx responses raise `RemoteServiceError`, with the service's
      `{"errors": [...]}` list attached when it can be parsed.
    - No retries: callers decide whether a failed RPC is worth repeating.
      Transport errors (`httpx.TransportError`) propagate unchanged.
    """

    def __init__(
        self,
        api_key: str,
        *,
        api_url: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._api_url = (api_url or DEFAULT_API_URL).rstrip("/")
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "KeylessApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --------------- Public API ---------------
    async def create_keyless_proof(
        self,
        *,
        jwt: str,
        ephemeral_key_pair_b64: str,
        network: Optional[Network] = None,
    ) -> Dict[str, Any]:
        """Request a zero-knowledge proof for `jwt` bound to the ephemeral key pair.

        The proof is returned as the opaque JSON object the service produced.
        """
        body = _drop_none(
            {
                "network": _network_value(network),
                "ephemeralKeyPairBase64": ephemeral_key_pair_b64,
            }
        )
        data = await self._post("zklogin/zkp", body, headers={KEYLESS_HEADER: jwt})
        if not isinstance(data, dict):
            raise RemoteServiceError(200, message="Malformed proof payload from keyless API")
        return data

    async def create_sponsored_transaction(
        self,
        *,
        transaction_bytes_b64: str,
        auth: SponsorAuth,
        network: Optional[Network] = None,
    ) -> SponsoredTransactionResponse:
        body: Dict[str, Any] = {
            "network": _network_value(network),
            "transactionBytesBase64": transaction_bytes_b64,
        }
        headers: Dict[str, str] = {}
        if isinstance(auth, JwtAuth):
            headers[KEYLESS_HEADER] = auth.jwt
        elif isinstance(auth, SenderAuth):
            body["sender"] = auth.sender
            body["allowedAddresses"] = auth.allowed_addresses
            body["allowedMoveCallTargets"] = auth.allowed_move_call_targets
        else:
            raise TypeError(f"Unsupported sponsorship auth: {type(auth).__name__}")

        data = await self._post("transaction-blocks/sponsor", _drop_none(body), headers=headers)
        try:
            return SponsoredTransactionResponse.model_validate(data)
        except ValidationError as ve:
            raise RemoteServiceError(
                200, message=f"Failed to parse sponsorship payload: {ve}"
            ) from ve

    # --------------- Internal ---------------
    async def _post(self, path: str, json_body: Dict[str, Any], *, headers: Dict[str, str]) -> Any:
        request_id = str(uuid4())
        url = f"{self._api_url}/{API_VERSION}/{path}"
        logger.debug("POST %s (request_id=%s)", url, request_id)
        resp = await self._client.post(
            url,
            json=json_body,
            headers={
                **headers,
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
                "Request-Id": request_id,
            },
        )
        if not resp.is_success:
            logger.debug("Keyless API %s failed with HTTP %s", path, resp.status_code)
            raise RemoteServiceError.from_response(resp.status_code, resp.text)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise RemoteServiceError(
                resp.status_code, message="Failed to parse JSON from keyless API"
            ) from exc
        if not isinstance(payload, dict) or "data" not in payload:
            raise RemoteServiceError(resp.status_code, message="Malformed response from keyless API")
        return payload["data"]


def _network_value(network: Optional[Network]) -> Optional[str]:
    return Network(network).value if network is not None else None


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


__all__ = [
    "KeylessApiClient",
    "JwtAuth",
    "SenderAuth",
    "SponsorAuth",
    "SponsoredTransactionResponse",
    "DEFAULT_API_URL",
    "KEYLESS_HEADER",
]
