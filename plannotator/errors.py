"""Plannotator exception hierarchy."""


class PlannotatorError(Exception):
    """Base error type for plan review failures."""


class PlanInputError(PlannotatorError):
    """Hook event did not carry usable plan text."""


class ServerStateError(PlannotatorError):
    """Decision server lifecycle method called in the wrong state."""


class PortInUseError(PlannotatorError):
    """Configured port stayed occupied through every bind attempt."""

    def __init__(self, port: int, attempts: int, *, is_remote: bool = False):
        message = f"Port {port} is already in use after {attempts} retries."
        if is_remote:
            message += (
                " Another Plannotator session may be running."
                " To use a different port, set PLANNOTATOR_PORT environment variable."
            )
        super().__init__(message)
        self.port = port
        self.attempts = attempts
        self.is_remote = is_remote


class VaultError(PlannotatorError):
    """Approved plan could not be written to the vault."""


class VaultPathError(VaultError):
    """Vault root is missing or is not a directory."""
