"""
Common utilities for keyless-flow.

Modules:
- errors: error taxonomy shared by every layer
- encoding: base64 helpers for opaque ledger bytes
- networks: supported networks and their endpoints
- keyless_api: async client for the proof and sponsorship service
"""

__all__ = [
    "errors",
    "encoding",
    "networks",
    "keyless_api",
]
