"""Exceptions raised by the users file store."""


class StoreError(Exception):
    """The users file could not be read, locked or replaced."""


class StoreLockTimeout(StoreError):
    """Another writer held the users file lock for too long."""
