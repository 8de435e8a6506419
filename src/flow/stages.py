from __future__ import annotations

from enum import Enum

from state.models import SessionHolder


class FlowStage(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHORIZATION_ISSUED = "authorization_issued"
    CALLBACK_PENDING = "callback_pending"
    AUTHENTICATED = "authenticated"
    PROOF_READY = "proof_ready"


def stage_of(holder: SessionHolder, *, callback_in_progress: bool = False) -> FlowStage:
    """Derive the flow stage from the session holder.

    Computed rather than stored so it is correct after a reload.
    """
    session = holder.value
    if session is None or not session.ephemeral_key_pair:
        return FlowStage.UNAUTHENTICATED
    if session.jwt and session.keyless_account:
        if session.proof is not None:
            return FlowStage.PROOF_READY
        return FlowStage.AUTHENTICATED
    if callback_in_progress:
        return FlowStage.CALLBACK_PENDING
    return FlowStage.AUTHORIZATION_ISSUED


__all__ = ["FlowStage", "stage_of"]
