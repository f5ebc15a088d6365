"""Error taxonomy shared by the ledger, learning and action components."""


class CoFounderError(Exception):
    """Base class for all engine errors."""


class NotFoundError(CoFounderError):
    """A decision, action, preference or source record id did not resolve."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} not found: {record_id}")


class InvalidTransitionError(CoFounderError):
    """An action status change (or a repeated outcome write) is not legal."""


class InvalidPreferenceError(CoFounderError):
    """A preference write would create a row with no confidence."""


class ExternalServiceError(CoFounderError):
    """The text-generation service or the send channel failed.

    Raised by the client wrappers only; the core always recovers from it.
    """


class StorageError(CoFounderError):
    """A persistence read or write failed."""
