"""
Keyless sign-in flow: sign-in, proof issuance, sponsorship and execution.
"""

from .config import FlowConfig
from .controller import KeylessFlow
from .ledger import DerivedAccount, EphemeralKeyPair, KeylessLedger, LedgerClient, SponsoredTransaction
from .stages import FlowStage

__all__ = [
    "FlowConfig",
    "KeylessFlow",
    "DerivedAccount",
    "EphemeralKeyPair",
    "KeylessLedger",
    "LedgerClient",
    "SponsoredTransaction",
    "FlowStage",
]
