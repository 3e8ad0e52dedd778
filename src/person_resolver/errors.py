from __future__ import annotations


class PersonResolverError(Exception):
    """Base class for errors surfaced to callers of the resolver."""


class InvalidQueryError(PersonResolverError, ValueError):
    pass


class StorageError(PersonResolverError):
    """
    Raised when the identity store cannot be read or written.
    This is the only failure class the resolution flow lets through.
    """
