from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel

from .errors import UnsupportedNetworkError


class Network(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    DEVNET = "devnet"
    M1 = "m1"


class NetworkConfig(BaseModel):
    fullnode: str
    faucet: Optional[str] = None


_CONFIGS: Dict[Network, NetworkConfig] = {
    Network.M1: NetworkConfig(
        fullnode="https://aptos.testnet.suzuka.movementlabs.xyz/v1",
        faucet="https://faucet.testnet.suzuka.movementlabs.xyz/",
    ),
    Network.TESTNET: NetworkConfig(
        fullnode="https://api.testnet.aptoslabs.com/v1",
        faucet="https://faucet.testnet.aptoslabs.com",
    ),
}


def get_network_config(network: Network | str | None) -> NetworkConfig:
    """
    Resolve fullnode/faucet endpoints for a network the keyless service supports.

    Only `m1` and `testnet` are wired up; anything else raises
    `UnsupportedNetworkError`.
    """
    try:
        key = Network(network) if network is not None else None
    except ValueError:
        key = None
    cfg = _CONFIGS.get(key) if key is not None else None
    if cfg is None:
        raise UnsupportedNetworkError(network)
    return cfg


__all__ = ["Network", "NetworkConfig", "get_network_config"]
