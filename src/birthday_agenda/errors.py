from __future__ import annotations


class AgendaError(Exception):
    """Base class for errors raised by the agenda core."""


class ValidationError(AgendaError, ValueError):
    pass


class NotFoundError(AgendaError, LookupError):
    pass


class StorageError(AgendaError):
    """The persistence medium failed or holds an unreadable payload."""


class AuthenticationError(AgendaError):
    pass
