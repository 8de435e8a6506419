"""
Ledger collaborator contracts.

The flow never builds, signs or serializes ledger objects itself; a ledger
SDK adapter supplied by the caller implements these protocols. Transactions,
authenticators and receipts are opaque to the flow.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from common.networks import Network


@dataclass(frozen=True)
class EphemeralKeyPair:
    data: bytes  # serialized key pair
    nonce: str
    expiry_date_secs: int


@dataclass(frozen=True)
class DerivedAccount:
    address: str
    pepper: bytes
    data: bytes  # serialized keyless account


class KeylessLedger(Protocol):
    def generate_ephemeral_key_pair(self) -> EphemeralKeyPair: ...

    async def derive_account(
        self,
        *,
        jwt: str,
        ephemeral_key_pair: bytes,
        network: Optional[Network] = None,
    ) -> DerivedAccount: ...

    def serialize_transaction(self, transaction: Any) -> bytes: ...

    def deserialize_authenticator(self, data: bytes) -> Any: ...

    def deserialize_transaction(self, data: bytes) -> Any: ...


class LedgerClient(Protocol):
    async def sign(self, *, account: bytes, transaction: Any) -> Any: ...

    async def submit(
        self,
        *,
        transaction: Any,
        sender_authenticator: Any,
        fee_payer_authenticator: Optional[Any] = None,
    ) -> str: ...

    async def wait_for_transaction(self, transaction_hash: str) -> Any: ...


@dataclass(frozen=True)
class SponsoredTransaction:
    fee_payer_authenticator: Any
    sponsor_signed_transaction: Any


__all__ = [
    "EphemeralKeyPair",
    "DerivedAccount",
    "KeylessLedger",
    "LedgerClient",
    "SponsoredTransaction",
]
