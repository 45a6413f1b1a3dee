"""
Session reducer: (session, update) -> session'.

Sessions are never mutated in place; every update returns a new
StreamSession so snapshots handed to observers stay stable.
"""

import logging

from article_stream.schemas.session import (
    Cancelled,
    Completed,
    EventReceived,
    Failed,
    Reset,
    SessionUpdate,
    Started,
    StreamSession,
)
from article_stream.schemas.stream import AgentId, EventKind, Stage, StreamEvent
from article_stream.services.narrator import narrate_transition
from article_stream.services.progress import advance, complete
from article_stream.services.validity import is_valid_article

logger = logging.getLogger(__name__)

_MESSAGES = {
    "no_article": {
        "en": "No valid article was produced.",
        "zh": "未生成有效文章。",
    },
    "cancelled": {
        "en": "Generation cancelled.",
        "zh": "生成已取消。",
    },
}


def _message(key: str, ui_language: str) -> str:
    messages = _MESSAGES[key]
    return messages.get(ui_language, messages["en"])


def _tracker_event(kind: EventKind, message: str) -> StreamEvent:
    return StreamEvent(agent_id=AgentId.TRACKER, kind=kind, message=message)


def start_session(ui_language: str = "en") -> StreamSession:
    return StreamSession(started=True, tracked_stage=Stage.RESEARCH, ui_language=ui_language)


def _on_event(session: StreamSession, update: EventReceived) -> StreamSession:
    event = update.event
    events = [*session.events, event]
    stage, progress = advance(session.tracked_stage, session.tracked_progress, event.agent_id)

    last_narrated = session.last_narrated_stage
    narration = narrate_transition(session.tracked_stage, stage, last_narrated, session.ui_language)
    if narration is not None:
        events.append(narration)
        last_narrated = session.tracked_stage

    return session.model_copy(
        update={
            "events": events,
            "tracked_stage": stage,
            "tracked_progress": progress,
            "last_narrated_stage": last_narrated,
        }
    )


def _on_completed(session: StreamSession, update: Completed) -> StreamSession:
    stage, progress = complete()
    events = session.events
    if not is_valid_article(update.article):
        logger.warning("Terminal payload produced no presentable article")
        events = [*events, _tracker_event(EventKind.ERROR, _message("no_article", session.ui_language))]
    return session.model_copy(
        update={
            "events": events,
            "final_article": update.article,
            "tracked_stage": stage,
            "tracked_progress": progress,
            "finished": True,
        }
    )


def reduce(session: StreamSession, update: SessionUpdate) -> StreamSession:
    if isinstance(update, Started):
        return start_session(update.ui_language)

    if isinstance(update, Reset):
        return StreamSession(ui_language=session.ui_language)

    if isinstance(update, EventReceived):
        return _on_event(session, update)

    if isinstance(update, Completed):
        return _on_completed(session, update)

    if isinstance(update, Failed):
        return session.model_copy(
            update={
                "events": [*session.events, _tracker_event(EventKind.ERROR, update.message)],
                "failed": True,
            }
        )

    if isinstance(update, Cancelled):
        return session.model_copy(
            update={
                "events": [
                    *session.events,
                    _tracker_event(EventKind.LOG, _message("cancelled", session.ui_language)),
                ],
                "cancelled": True,
            }
        )

    raise TypeError(f"Unknown session update: {update!r}")
