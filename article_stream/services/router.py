import json
import logging
from typing import Any

from pydantic import ValidationError

from article_stream.core.exceptions import BackendReportedError, ProtocolError
from article_stream.schemas.session import Completed, EventReceived, SessionUpdate
from article_stream.schemas.stream import EnvelopeType, RawEnvelope, StreamEvent
from article_stream.services.normalizer import MAX_DEPTH, build_final_article

logger = logging.getLogger(__name__)


def decode_envelope(payload: str) -> RawEnvelope:
    """Parse one frame payload. Raises ProtocolError for anything undecodable."""
    try:
        raw = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Malformed frame JSON: {e.msg}", payload) from e
    except RecursionError as e:
        raise ProtocolError("Frame JSON nested too deeply", payload) from e

    try:
        return RawEnvelope.model_validate(raw)
    except ValidationError as e:
        raise ProtocolError(f"Invalid envelope: {e.error_count()} error(s)", payload) from e


def _error_message(envelope: RawEnvelope) -> str:
    data: Any = envelope.data
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    if isinstance(data, str) and data.strip():
        return data
    return envelope.message or "Unknown backend error"


def route_envelope(envelope: RawEnvelope, max_depth: int = MAX_DEPTH) -> SessionUpdate:
    """
    Turn a decoded envelope into a session update.

    - event: the payload must be a StreamEvent (ProtocolError otherwise)
    - done: the payload goes through the normalizer
    - error: raises BackendReportedError with the backend's message
    """
    if envelope.type == EnvelopeType.EVENT:
        try:
            event = StreamEvent.model_validate(envelope.data)
        except ValidationError as e:
            raise ProtocolError(f"Invalid stream event: {e.error_count()} error(s)") from e
        return EventReceived(event=event)

    if envelope.type == EnvelopeType.DONE:
        article = build_final_article(envelope.data, max_depth=max_depth)
        logger.info(
            f"Terminal payload normalized: title={article.title!r}, content_chars={len(article.content)}"
        )
        return Completed(article=article)

    raise BackendReportedError(_error_message(envelope))
