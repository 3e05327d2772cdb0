from __future__ import annotations


class InvalidRequestError(ValueError):
    """The caller supplied missing or unusable input."""


class UpstreamError(RuntimeError):
    """A collaborator failed in a way the caller cannot recover from."""

    def __init__(self, message: str, *, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code
