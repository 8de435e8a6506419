import os
import sys
from itertools import count
from typing import Any, Dict, List, Optional

import jwt
import pytest


def pytest_configure():
    # Ensure `src/` is importable as top-level for `common.*`, `state.*`, `flow.*` imports
    root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    src_path = os.path.join(root, "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


NOW_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self, now_ms: int = NOW_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


class CountingStorage:
    """In-memory SyncStore that records every call."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.gets: List[str] = []
        self.sets: List[str] = []
        self.deletes: List[str] = []

    def get(self, key: str) -> Optional[str]:
        self.gets.append(key)
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.sets.append(key)
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.deletes.append(key)
        self.data.pop(key, None)


class FakeLedger:
    """Deterministic stand-in for a ledger SDK adapter."""

    def __init__(self, *, expiry_date_secs: int = NOW_MS // 1000 + 3600) -> None:
        from flow.ledger import DerivedAccount, EphemeralKeyPair

        self._EphemeralKeyPair = EphemeralKeyPair
        self._DerivedAccount = DerivedAccount
        self._seq = count(1)
        self.expiry_date_secs = expiry_date_secs
        self.derive_calls: List[Dict[str, Any]] = []

    def generate_ephemeral_key_pair(self):
        n = next(self._seq)
        return self._EphemeralKeyPair(
            data=f"ekp-{n}".encode(),
            nonce=f"nonce-{n}",
            expiry_date_secs=self.expiry_date_secs,
        )

    async def derive_account(self, *, jwt: str, ephemeral_key_pair: bytes, network=None):
        self.derive_calls.append({"jwt": jwt, "ephemeral_key_pair": ephemeral_key_pair, "network": network})
        return self._DerivedAccount(
            address="0x" + "ab" * 32,
            pepper=b"pepper-bytes",
            data=b"account:" + ephemeral_key_pair,
        )

    def serialize_transaction(self, transaction: Any) -> bytes:
        return f"tx:{transaction}".encode()

    def deserialize_authenticator(self, data: bytes) -> Any:
        return ("authenticator", data)

    def deserialize_transaction(self, data: bytes) -> Any:
        return ("transaction", data)


class FakeLedgerClient:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    async def sign(self, *, account: bytes, transaction: Any) -> Any:
        self.calls.append(("sign", account, transaction))
        return ("sender-auth", account)

    async def submit(self, *, transaction: Any, sender_authenticator: Any, fee_payer_authenticator: Any = None) -> str:
        self.calls.append(("submit", transaction, sender_authenticator, fee_payer_authenticator))
        return "0xhash"

    async def wait_for_transaction(self, transaction_hash: str) -> Any:
        self.calls.append(("wait", transaction_hash))
        return {"hash": transaction_hash, "success": True}


def make_id_token(*, sub: Optional[str] = "S", aud: Any = "A", nonce: Optional[str] = "nonce-1", **extra: Any) -> str:
    claims: Dict[str, Any] = {"iss": "https://accounts.google.com", **extra}
    if sub is not None:
        claims["sub"] = sub
    if aud is not None:
        claims["aud"] = aud
    if nonce is not None:
        claims["nonce"] = nonce
    return jwt.encode(claims, "test-secret-that-is-long-enough-for-hs256", algorithm="HS256")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> CountingStorage:
    return CountingStorage()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def ledger_client() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest.fixture
def id_token():
    return make_id_token
