"""
Error taxonomy for the generation stream client.

None of these escape the read loop: the controller converts each one into a
session update (see services/generation_service.py).
"""


class ArticleStreamError(Exception):
    """Base class for stream client errors."""


class TransportError(ArticleStreamError):
    """The request could not be sent, returned a non-2xx status, or the body read failed."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ProtocolError(ArticleStreamError):
    """A frame payload is not a decodable envelope. The frame is skipped."""

    def __init__(self, message: str, payload: str | None = None):
        super().__init__(message)
        self.payload = payload


class BackendReportedError(ArticleStreamError):
    """The backend sent an explicit `error` envelope."""


class NormalizationFailure(ArticleStreamError):
    """No safe article content could be recovered from the terminal payload."""
