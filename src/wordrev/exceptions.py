"""Exceptions raised by the revision engine."""


class RevisionError(Exception):
    """Base class for revision engine errors."""


class PersistenceUnavailable(RevisionError):
    """A load, update or delete against word storage failed.

    The session that raised it has not changed its state, so the same call can
    be issued again.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(message)
        self.operation = operation
