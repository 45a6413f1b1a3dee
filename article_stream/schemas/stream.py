import time
import uuid
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AgentId(StrEnum):
    TRACKER = "tracker"
    RESEARCHER = "researcher"
    STRATEGIST = "strategist"
    WRITER = "writer"
    ARTIST = "artist"


class EventKind(StrEnum):
    LOG = "log"
    CARD = "card"
    ERROR = "error"


class EnvelopeType(StrEnum):
    EVENT = "event"
    DONE = "done"
    ERROR = "error"


class Stage(StrEnum):
    """Coarse generation phase, in pipeline order."""

    INPUT = "input"
    RESEARCH = "research"
    STRATEGY = "strategy"
    WRITING = "writing"
    VISUALIZING = "visualizing"
    COMPLETE = "complete"


def _event_id() -> str:
    return uuid.uuid4().hex[:8]


def _now_ms() -> int:
    return int(time.time() * 1000)


class StreamEvent(BaseModel):
    """One entry of the agent feed. Wire names are camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_event_id)
    agent_id: str = Field(..., alias="agentId")  # AgentId value, or anything the backend invents
    kind: EventKind = Field(..., alias="type")
    card_type: Optional[str] = Field(default=None, alias="cardType")
    message: Optional[str] = None
    data: Optional[Any] = None
    timestamp: int | float = Field(default_factory=_now_ms)


class RawEnvelope(BaseModel):
    type: EnvelopeType
    data: Optional[Any] = None
    message: Optional[str] = None  # error frames put it here instead of in data
