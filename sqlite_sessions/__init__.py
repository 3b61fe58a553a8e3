# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from typing import TYPE_CHECKING

from .session import (
    InvalidTenantError,
    SessionDecodeError,
    SessionStoreError,
    SQLiteSessionStore,
    StoreOptions,
)

__all__ = [
    "InvalidTenantError",
    "SQLiteSessionStore",
    "SessionDecodeError",
    "SessionStoreError",
    "StoreOptions",
    "get_session_store",
]

if TYPE_CHECKING:  # pragma: no cover
    from .session.dependencies import get_session_store as _get_session_store


def __getattr__(name: str):  # pragma: no cover - simple lazy import
    if name == "get_session_store":
        from .session.dependencies import get_session_store

        return get_session_store
    raise AttributeError(name)
