"""
Flow state: data model, observable holders and persistence.

Profile state is stored as plain JSON; session state is serialized,
encrypted (Fernet by default) and stored through a pluggable key-value
adapter (in-memory, JSON file or S3).
"""

from .models import ProfileState, Provider, SessionHolder, SessionState
from .observable import Observable
from .session_store import SessionStore

__all__ = [
    "ProfileState",
    "Provider",
    "SessionHolder",
    "SessionState",
    "Observable",
    "SessionStore",
]
