"""Service Bus management client exceptions."""


class BusMgmtError(Exception):
    """Abstract management client error."""


class ConfigError(BusMgmtError):
    """Raised when a client or harness configuration is invalid."""


class ValidationError(BusMgmtError):
    """Raised when a namespace name fails client-side validation.

    The message always contains "must start with a letter".
    """


class RemoteError(BusMgmtError):
    """Raised when the management API rejects or fails an operation."""

    def __init__(self, message: str, status_code=None, code=None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class TransientActivationError(RemoteError):
    """Raised when a namespace cannot be read while waiting for activation."""


class ReplayMismatchError(BusMgmtError):
    """Raised when replayed traffic diverges from the recording."""


class FixtureError(BusMgmtError):
    """Raised when the fixture store is used incorrectly."""
