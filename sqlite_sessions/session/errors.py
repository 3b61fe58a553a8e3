class SessionStoreError(Exception):
    """Base class for errors raised by the session store."""


class SessionDecodeError(SessionStoreError, ValueError):
    """A persisted session payload could not be decoded."""


class SessionEncodeError(SessionStoreError, ValueError):
    """A session payload could not be serialised to JSON."""


class InvalidTenantError(SessionStoreError, ValueError):
    """The request context does not name a usable tenant host."""
