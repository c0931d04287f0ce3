from ava.sessions.locks import SessionLocks
from ava.sessions.store import InMemorySessionStore

__all__ = ["InMemorySessionStore", "SessionLocks"]
