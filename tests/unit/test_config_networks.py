from __future__ import annotations

import pytest

from common.errors import UnsupportedNetworkError
from common.networks import Network, get_network_config
from flow.config import FlowConfig
from flow.controller import KeylessFlow


def test_from_env_requires_api_key(monkeypatch):
    monkeypatch.delenv("KEYLESS_API_KEY", raising=False)
    with pytest.raises(RuntimeError) as ei:
        FlowConfig.from_env()
    assert "KEYLESS_API_KEY" in str(ei.value)


def test_from_env_reads_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("KEYLESS_API_KEY", "pk_env")
    monkeypatch.setenv("KEYLESS_API_URL", "https://keyless.example")
    monkeypatch.setenv("KEYLESS_ENCRYPTION_KEY", "enc")
    monkeypatch.setenv("KEYLESS_STATE_FILE", str(tmp_path / "state.json"))
    monkeypatch.setenv("KEYLESS_HTTP_TIMEOUT", "3.5")

    cfg = FlowConfig.from_env()
    assert cfg.api_key == "pk_env"
    assert cfg.api_url == "https://keyless.example"
    assert cfg.encryption_key == "enc"
    assert cfg.timeout == 3.5
    assert cfg.state_file == str(tmp_path / "state.json")


def test_from_env_defaults(monkeypatch):
    monkeypatch.setenv("KEYLESS_API_KEY", "pk_env")
    for name in ("KEYLESS_API_URL", "KEYLESS_ENCRYPTION_KEY", "KEYLESS_STATE_FILE", "KEYLESS_HTTP_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    cfg = FlowConfig.from_env()
    assert cfg.api_url == "http://localhost:3000"
    assert cfg.encryption_key is None
    assert cfg.timeout == 15.0


def test_from_env_bad_timeout(monkeypatch):
    monkeypatch.setenv("KEYLESS_API_KEY", "pk_env")
    monkeypatch.setenv("KEYLESS_HTTP_TIMEOUT", "soon")
    with pytest.raises(RuntimeError):
        FlowConfig.from_env()


@pytest.mark.asyncio
async def test_from_config_uses_state_file(tmp_path, ledger, clock):
    path = tmp_path / "state.json"
    cfg = FlowConfig(api_key="pk_file", state_file=str(path))

    async with KeylessFlow.from_config(cfg, ledger=ledger, clock=clock) as flow:
        await flow.create_authorization_url(provider="google", client_id="C", redirect_url="https://x")
    assert path.exists()

    async with KeylessFlow.from_config(cfg, ledger=ledger, clock=clock) as reloaded:
        session = await reloaded.get_session()
        assert session is not None and session.nonce == "nonce-1"
        assert reloaded.profile.get().provider.value == "google"


def test_network_configs():
    assert get_network_config(Network.M1).fullnode.startswith("https://aptos.testnet.suzuka.movementlabs.xyz")
    assert get_network_config("testnet").fullnode
    for bad in (Network.MAINNET, "devnet", "nope", None):
        with pytest.raises(UnsupportedNetworkError):
            get_network_config(bad)
