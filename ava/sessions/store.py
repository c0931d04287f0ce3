from __future__ import annotations

from ava.models.sessions import SessionState


class InMemorySessionStore:
    """Process-local session store.

    State lives only as long as the process; durability is a deployment
    concern of whatever store replaces this one.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, SessionState] = {}

    async def get(self, session_id: str) -> SessionState | None:
        return self._sessions.get(session_id)

    async def put(self, state: SessionState) -> None:
        self._sessions[state.session_id] = state

    async def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def list_session_ids(self) -> list[str]:
        return sorted(self._sessions)


__all__ = ["InMemorySessionStore"]
