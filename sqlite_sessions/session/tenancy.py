"""Tenant key derivation and tenant-to-file path policies."""

from __future__ import annotations

import os
from typing import Any, Mapping, Protocol

from .constants import DB_SUFFIX, MEMORY_MARKER
from .errors import InvalidTenantError
from .schemas import StoreOptions


class PathPolicy(Protocol):
    def __call__(self, key: str, options: StoreOptions) -> str: ...


def default_path_policy(key: str, options: StoreOptions) -> str:
    """``<dir>/<db>.sqlite``; in-memory names are used verbatim."""
    name = options.db_name
    if MEMORY_MARKER in name:
        return name
    return os.path.join(options.dir, name + DB_SUFFIX)


class SitesPathPolicy:
    """Maps each host to ``<root>/<host>/db/<filename>``."""

    def __init__(self, root: str = os.path.join("..", "sites"), filename: str = "sessions.sqlite") -> None:
        self.root = root
        self.filename = filename

    def __call__(self, key: str, options: StoreOptions) -> str:
        return os.path.join(self.root, key, "db", self.filename)

    def __repr__(self) -> str:
        return f"SitesPathPolicy(root={self.root!r}, filename={self.filename!r})"


def tenant_key_from_host(host: str | None) -> str:
    if host is None or not host.strip():
        raise InvalidTenantError("Request carries no host header")
    host = host.strip().lower()
    if host.startswith("["):
        end = host.find("]")
        if end == -1:
            raise InvalidTenantError(f"Malformed host header: {host!r}")
        key = host[: end + 1]
    else:
        key = host.split(":", 1)[0]
    if not key or "/" in key or "\\" in key or ".." in key:
        raise InvalidTenantError(f"Unsafe tenant host: {host!r}")
    return key


def tenant_key_from_context(context: Any) -> str:
    """Derive the tenant key from a request-like object or a header mapping."""
    headers = getattr(context, "headers", context)
    if not isinstance(headers, Mapping) and not hasattr(headers, "get"):
        raise InvalidTenantError(f"Cannot read headers from {type(context).__name__}")
    host = headers.get("host")
    if host is None and isinstance(headers, dict):
        # Plain dicts are case-sensitive; header names are not.
        host = next(
            (value for name, value in headers.items() if isinstance(name, str) and name.lower() == "host"),
            None,
        )
    return tenant_key_from_host(host)
