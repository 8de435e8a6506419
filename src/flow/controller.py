from __future__ import annotations

import asyncio
import binascii
import logging
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qsl

import httpx
import jwt

from common.encoding import from_b64, to_b64
from common.errors import (
    ExpiredProofError,
    InvalidTokenError,
    MissingProofInputsError,
    NoAccountError,
    NotAuthenticatedError,
    RemoteServiceError,
    SessionNotFoundError,
)
from common.keyless_api import JwtAuth, KeylessApiClient
from common.networks import Network
from state.encryption import Encryption
from state.models import ProfileState, Provider, SessionHolder, SessionState
from state.observable import Observable
from state.session_store import SessionStore
from state.storage import JsonFileStorage, SyncStore

from .config import FlowConfig
from .ledger import KeylessLedger, LedgerClient, SponsoredTransaction
from .providers import build_authorization_url, resolve_provider
from .stages import FlowStage, stage_of


logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _as_network(network: Network | str | None) -> Optional[Network]:
    return Network(network) if network is not None else None


def _parse_fragment(fragment: str) -> Dict[str, str]:
    body = fragment[1:] if fragment.startswith("#") else fragment
    return dict(parse_qsl(body, keep_blank_values=True))


def _decode_claims(id_token: str) -> Dict[str, Any]:
    # Claims are only read here; the proof and derivation services verify the signature.
    try:
        return jwt.decode(id_token, options={"verify_signature": False})
    except jwt.PyJWTError as ex:
        raise InvalidTokenError(f"Malformed ID Token: {ex}") from ex


class KeylessFlow:
    """
    Orchestrates keyless sign-in, proof issuance, sponsorship and execution.

    Stages: unauthenticated -> authorization issued -> callback pending ->
    authenticated -> proof ready. `logout()` (or detecting an expired session)
    returns to unauthenticated from anywhere.

    State is exposed through two observables:
    - `profile`: durable `ProfileState` (provider, address, pepper).
    - `session`: `SessionHolder` wrapping the encrypted `SessionState`;
      `initialized` is False until the session has been loaded from storage.

    The instance expects a single driving caller context. Concurrent first
    calls to `get_session()` share one in-flight load.
    """

    def __init__(
        self,
        *,
        api_key: str,
        ledger: KeylessLedger,
        api_url: Optional[str] = None,
        store: Optional[SyncStore] = None,
        encryption: Optional[Encryption] = None,
        encryption_key: Optional[str] = None,
        api_client: Optional[KeylessApiClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._owns_api_client = api_client is None
        self._api = api_client or KeylessApiClient(
            api_key, api_url=api_url, timeout=timeout, client=http_client
        )
        self._ledger = ledger
        self._store = SessionStore(
            api_key=api_key,
            store=store,
            encryption=encryption,
            encryption_key=encryption_key,
        )
        self._clock = clock
        self._loading: Optional[asyncio.Future[Optional[SessionState]]] = None
        self._callback_in_progress = False

    @classmethod
    def from_config(cls, config: FlowConfig, *, ledger: KeylessLedger, **kwargs: Any) -> "KeylessFlow":
        if config.state_file and "store" not in kwargs:
            kwargs["store"] = JsonFileStorage(config.state_file)
        return cls(
            api_key=config.api_key,
            api_url=config.api_url,
            encryption_key=config.encryption_key,
            timeout=config.timeout,
            ledger=ledger,
            **kwargs,
        )

    async def aclose(self) -> None:
        if self._owns_api_client:
            await self._api.aclose()

    async def __aenter__(self) -> "KeylessFlow":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # -------- Observable state --------
    @property
    def profile(self) -> Observable[ProfileState]:
        return self._store.profile

    @property
    def session(self) -> Observable[SessionHolder]:
        return self._store.session

    @property
    def stage(self) -> FlowStage:
        return stage_of(self._store.session.get(), callback_in_progress=self._callback_in_progress)

    @property
    def remote_client(self) -> KeylessApiClient:
        return self._api

    @property
    def session_store(self) -> SessionStore:
        return self._store

    # -------- Sign-in --------
    async def create_authorization_url(
        self,
        provider: Provider | str,
        client_id: str,
        redirect_url: str,
        network: Network | str | None = None,
        state: Optional[str] = None,
    ) -> str:
        """
        Start a sign-in attempt and return the provider's authorization URL.

        A fresh ephemeral key pair is generated and stored, replacing any
        attempt already in flight. Its nonce goes into the URL so the identity
        token the provider returns is bound to it. `state` is echoed back by
        the provider and returned from `handle_auth_callback`.
        """
        p = resolve_provider(provider)
        key_pair = self._ledger.generate_ephemeral_key_pair()
        url = build_authorization_url(
            p,
            client_id=client_id,
            redirect_url=redirect_url,
            nonce=key_pair.nonce,
            state=state,
        )

        await self._store.set_session(
            SessionState(
                ephemeral_key_pair=to_b64(key_pair.data),
                expires_at=key_pair.expiry_date_secs * 1000,
                nonce=key_pair.nonce,
                network=_as_network(network),
            )
        )
        self._store.set_profile(ProfileState(provider=p))
        logger.debug("Authorization issued for provider %s", p.value)
        return url

    async def handle_auth_callback(self, fragment: str) -> Optional[str]:
        """
        Complete sign-in from the redirect fragment (`#id_token=...&state=...`).

        Derives the keyless account for the returned identity token, stores the
        token and account in the session and the address and pepper in the
        profile. Returns the `state` parameter, or None.
        """
        params = _parse_fragment(fragment)

        session = await self.get_session()
        if session is None or not session.ephemeral_key_pair:
            raise SessionNotFoundError(
                "Start of sign-in flow could not be found. "
                "Ensure you have started the sign-in flow before calling this."
            )

        id_token = params.get("id_token")
        if not id_token:
            raise InvalidTokenError("Missing ID Token")

        claims = _decode_claims(id_token)
        aud = claims.get("aud")
        if not claims.get("sub") or not aud or not isinstance(aud, str):
            raise InvalidTokenError("Missing JWT data")

        token_nonce = claims.get("nonce")
        if session.nonce and token_nonce is None:
            raise InvalidTokenError("ID Token carries no nonce")
        if session.nonce and token_nonce != session.nonce:
            raise SessionNotFoundError(
                "ID Token belongs to a sign-in attempt that is no longer active; start the sign-in flow again."
            )

        self._callback_in_progress = True
        try:
            account = await self._ledger.derive_account(
                jwt=id_token,
                ephemeral_key_pair=from_b64(session.ephemeral_key_pair),
                network=session.network,
            )
        finally:
            self._callback_in_progress = False

        profile = ProfileState(
            provider=self._store.profile.get().provider,
            address=account.address,
            pepper=to_b64(account.pepper),
        )
        await self._store.set_session(
            session.model_copy(
                update={"jwt": id_token, "keyless_account": to_b64(account.data)}
            )
        )
        try:
            self._store.set_profile(profile)
        except Exception:
            # Roll the session back so it never claims an account the profile lacks.
            await self._store.set_session(session)
            raise
        logger.debug("Sign-in completed")
        return params.get("state")

    # -------- Session lifecycle --------
    async def initialize(self) -> None:
        """Eagerly load the stored session (normally done on first use)."""
        await self.get_session()

    async def get_session(self) -> Optional[SessionState]:
        holder = self._store.session.get()
        if holder.initialized:
            return holder.value

        if self._loading is None:
            self._loading = asyncio.ensure_future(self._hydrate_session())
            self._loading.add_done_callback(self._clear_loading)
        # Shielded: cancelling one caller must not cancel the load the others share.
        return await asyncio.shield(self._loading)

    def _clear_loading(self, fut: asyncio.Future) -> None:
        if self._loading is fut:
            self._loading = None

    async def _hydrate_session(self) -> Optional[SessionState]:
        value = await self._store.read_session()

        # A write that landed while we were reading wins.
        holder = self._store.session.get()
        if holder.initialized:
            return holder.value

        # TODO: keep the profile and only drop the expired key material instead of a full logout.
        if value is not None and value.is_expired(self._clock()):
            logger.warning("Stored session has expired; logging out")
            await self.logout()
            return None

        self._store.mark_session_loaded(value)
        return value

    async def logout(self) -> None:
        self._store.clear_profile()
        await self._store.set_session(None)
        logger.debug("Logged out")

    # -------- Proof --------
    async def get_proof(self, network: Network | str | None = None) -> Dict[str, Any]:
        """
        Return the zero-knowledge proof for the current session.

        A cached proof is reused until the session's `expires_at`; after that it
        raises `ExpiredProofError`. Otherwise one proof is requested from the
        keyless service and cached in the session.
        """
        session = await self.get_session()
        pepper = self._store.profile.get().pepper

        if session is not None and session.proof is not None:
            if session.is_expired(self._clock()):
                raise ExpiredProofError("Stored proof is expired.")
            return session.proof

        if not pepper or session is None or not session.jwt or not session.ephemeral_key_pair:
            raise MissingProofInputsError("Missing required parameters for proof generation")

        proof = await self._api.create_keyless_proof(
            jwt=session.jwt,
            ephemeral_key_pair_b64=session.ephemeral_key_pair,
            network=_as_network(network) or session.network,
        )
        await self._store.set_session(session.model_copy(update={"proof": proof}))
        return proof

    # -------- Transactions --------
    async def sponsor_transaction(
        self,
        transaction: Any,
        network: Network | str | None = None,
    ) -> SponsoredTransaction:
        """Have the keyless service co-sign `transaction` as fee payer. Does not submit."""
        session = await self.get_session()
        if session is None or not session.jwt:
            raise NotAuthenticatedError("Missing required data for sponsorship.")

        transaction_bytes_b64 = to_b64(self._ledger.serialize_transaction(transaction))
        resp = await self._api.create_sponsored_transaction(
            transaction_bytes_b64=transaction_bytes_b64,
            auth=JwtAuth(jwt=session.jwt),
            network=_as_network(network) or session.network,
        )

        fee_payer_authenticator = self._ledger.deserialize_authenticator(
            _decode_sponsor_bytes(resp.sponsor_auth_bytes_base64)
        )
        sponsor_signed_transaction = self._ledger.deserialize_transaction(
            _decode_sponsor_bytes(resp.sponsor_signed_transaction_bytes_base64)
        )
        return SponsoredTransaction(
            fee_payer_authenticator=fee_payer_authenticator,
            sponsor_signed_transaction=sponsor_signed_transaction,
        )

    async def execute_transaction(
        self,
        transaction: Any,
        ledger_client: LedgerClient,
        fee_payer_authenticator: Optional[Any] = None,
    ) -> Any:
        """
        Sign `transaction` as the derived account, submit it, and wait for it
        to be confirmed. Ledger errors propagate unchanged.
        """
        session = await self.get_session()
        if session is None or not session.keyless_account:
            raise NoAccountError("No derived account found in the session.")

        sender_authenticator = await ledger_client.sign(
            account=from_b64(session.keyless_account),
            transaction=transaction,
        )
        transaction_hash = await ledger_client.submit(
            transaction=transaction,
            sender_authenticator=sender_authenticator,
            fee_payer_authenticator=fee_payer_authenticator,
        )
        logger.debug("Submitted transaction %s", transaction_hash)
        return await ledger_client.wait_for_transaction(transaction_hash)

    async def sponsor_and_execute_transaction(
        self,
        transaction: Any,
        ledger_client: LedgerClient,
        network: Network | str | None = None,
    ) -> Any:
        sponsored = await self.sponsor_transaction(transaction, network=network)
        return await self.execute_transaction(
            sponsored.sponsor_signed_transaction,
            ledger_client,
            fee_payer_authenticator=sponsored.fee_payer_authenticator,
        )


def _decode_sponsor_bytes(text: str) -> bytes:
    try:
        return from_b64(text)
    except (binascii.Error, ValueError) as ex:
        raise RemoteServiceError(200, message="Sponsorship payload is not valid base64") from ex


__all__ = ["KeylessFlow"]
