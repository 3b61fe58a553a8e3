from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol, runtime_checkable

Callback = Callable[..., Any]


@runtime_checkable
class SessionStoreProtocol(Protocol):
    """Operations a session middleware needs from its persistence layer."""

    async def get(self, sid: str, callback: Optional[Callback] = None, *, request: Any = None) -> Any: ...

    async def set(
        self,
        sid: str,
        sess: Mapping[str, Any],
        callback: Optional[Callback] = None,
        *,
        request: Any = None,
    ) -> Any: ...

    async def destroy(self, sid: str, callback: Optional[Callback] = None, *, request: Any = None) -> Any: ...

    async def touch(
        self,
        sid: str,
        sess: Optional[Mapping[str, Any]],
        callback: Optional[Callback] = None,
        *,
        request: Any = None,
    ) -> Any: ...

    async def length(self, callback: Optional[Callback] = None, *, request: Any = None) -> Any: ...

    async def clear(self, callback: Optional[Callback] = None, *, request: Any = None) -> Any: ...
