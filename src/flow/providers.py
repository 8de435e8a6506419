from __future__ import annotations

from typing import Dict, Optional
from urllib.parse import urlencode

from common.errors import UnsupportedProviderError
from state.models import Provider


AUTHORIZE_ENDPOINTS: Dict[Provider, str] = {
    Provider.GOOGLE: "https://accounts.google.com/o/oauth2/v2/auth",
}

OIDC_SCOPE = "openid profile email"


def resolve_provider(provider: Provider | str) -> Provider:
    """Return the provider if it has a registered authorization endpoint."""
    try:
        p = Provider(provider)
    except ValueError:
        raise UnsupportedProviderError(provider) from None
    if p not in AUTHORIZE_ENDPOINTS:
        raise UnsupportedProviderError(p.value)
    return p


def build_authorization_url(
    provider: Provider | str,
    *,
    client_id: str,
    redirect_url: str,
    nonce: str,
    state: Optional[str] = None,
) -> str:
    """
    Implicit-flow OpenID Connect authorization URL asking for an ID token.

    The nonce binds the token the provider issues to the ephemeral key pair.
    """
    p = resolve_provider(provider)
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_url,
        "response_type": "id_token",
        "scope": OIDC_SCOPE,
        "nonce": nonce,
    }
    if state is not None:
        params["state"] = state
    return f"{AUTHORIZE_ENDPOINTS[p]}?{urlencode(params)}"


__all__ = ["AUTHORIZE_ENDPOINTS", "OIDC_SCOPE", "resolve_provider", "build_authorization_url"]
