from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

from article_stream.schemas.article import FinalArticle
from article_stream.schemas.stream import Stage, StreamEvent
from article_stream.services.progress import STAGE_PROGRESS
from article_stream.services.validity import is_valid_article


class StreamSession(BaseModel):
    """
    State of one generation request.

    `tracked_stage`/`tracked_progress` hold what the agent feed has shown so
    far. The observable `stage`, `progress` and `is_generating` are derived
    from them, the lifecycle flags and the final article, so a valid
    article always reads as complete.
    """

    events: List[StreamEvent] = []
    tracked_stage: Stage = Stage.INPUT
    tracked_progress: int = 0
    final_article: Optional[FinalArticle] = None
    started: bool = False
    finished: bool = False
    failed: bool = False
    cancelled: bool = False
    last_narrated_stage: Optional[Stage] = None
    ui_language: str = "en"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_valid_article(self) -> bool:
        return is_valid_article(self.final_article)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def stage(self) -> Stage:
        if self.finished or self.has_valid_article:
            return Stage.COMPLETE
        return self.tracked_stage

    @computed_field  # type: ignore[prop-decorator]
    @property
    def progress(self) -> int:
        if self.finished or self.has_valid_article:
            return STAGE_PROGRESS[Stage.COMPLETE]
        return self.tracked_progress

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_generating(self) -> bool:
        terminal = self.finished or self.failed or self.cancelled
        return self.started and not terminal and not self.has_valid_article

    @computed_field  # type: ignore[prop-decorator]
    @property
    def presentation(self) -> Literal["input", "generating", "preview"]:
        if self.has_valid_article:
            return "preview"
        return "generating" if self.started else "input"


class SessionSnapshot(BaseModel):
    """What observers see after each frame. camelCase on the wire."""

    model_config = ConfigDict(populate_by_name=True)

    stage: Stage
    progress: int
    events: List[StreamEvent] = []
    final_article: Optional[FinalArticle] = Field(default=None, alias="finalArticle")
    is_generating: bool = Field(..., alias="isGenerating")
    presentation: Literal["input", "generating", "preview"]

    @classmethod
    def from_session(cls, session: StreamSession) -> "SessionSnapshot":
        return cls(
            stage=session.stage,
            progress=session.progress,
            events=session.events,
            final_article=session.final_article,
            is_generating=session.is_generating,
            presentation=session.presentation,
        )


# Session updates: the only ways a session changes.

class Started(BaseModel):
    kind: Literal["started"] = "started"
    ui_language: str = "en"


class EventReceived(BaseModel):
    kind: Literal["event"] = "event"
    event: StreamEvent


class Completed(BaseModel):
    kind: Literal["completed"] = "completed"
    article: FinalArticle


class Failed(BaseModel):
    kind: Literal["failed"] = "failed"
    message: str


class Cancelled(BaseModel):
    kind: Literal["cancelled"] = "cancelled"


class Reset(BaseModel):
    kind: Literal["reset"] = "reset"


SessionUpdate = Annotated[
    Union[Started, EventReceived, Completed, Failed, Cancelled, Reset],
    Field(discriminator="kind"),
]
