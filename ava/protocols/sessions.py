from __future__ import annotations

from typing import Protocol, runtime_checkable

from ava.models.sessions import SessionState


@runtime_checkable
class SessionStore(Protocol):
    async def get(self, session_id: str) -> SessionState | None: ...

    async def put(self, state: SessionState) -> None: ...

    async def delete(self, session_id: str) -> None: ...

    async def list_session_ids(self) -> list[str]: ...


__all__ = ["SessionStore"]
