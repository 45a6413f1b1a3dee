from typing import Optional

from article_stream.schemas.stream import AgentId, EventKind, Stage, StreamEvent
from article_stream.services.progress import stage_label

_HANDOFF_TEMPLATES = {
    "en": "✓ {done} finished. Handing off to {next}...",
    "zh": "✓ {done}已完成，正在移交至{next}...",
}


def narrate_transition(
    previous: Stage,
    current: Stage,
    last_narrated: Optional[Stage],
    ui_language: str = "en",
) -> Optional[StreamEvent]:
    """
    Build the synthetic tracker log line for a stage hand-off, or None when
    this change should not be narrated (no change, leaving `input`, arriving
    at `complete`, or already narrated).
    """
    if previous == current:
        return None
    if previous == Stage.INPUT or current == Stage.COMPLETE:
        return None
    if previous == last_narrated:
        return None

    template = _HANDOFF_TEMPLATES.get(ui_language, _HANDOFF_TEMPLATES["en"])
    language = ui_language if ui_language in _HANDOFF_TEMPLATES else "en"
    return StreamEvent(
        agent_id=AgentId.TRACKER,
        kind=EventKind.LOG,
        message=template.format(
            done=stage_label(previous, language),
            next=stage_label(current, language),
        ),
    )
