"""
Stage/progress tracking.

Each backend agent maps to a coarse stage and a progress floor. Values only
ever go up; agents outside the table (tracker, or anything unknown) change
nothing.
"""

from article_stream.schemas.stream import AgentId, Stage

STAGE_ORDER = [
    Stage.INPUT,
    Stage.RESEARCH,
    Stage.STRATEGY,
    Stage.WRITING,
    Stage.VISUALIZING,
    Stage.COMPLETE,
]

STAGE_PROGRESS = {
    Stage.INPUT: 0,
    Stage.RESEARCH: 20,
    Stage.STRATEGY: 40,
    Stage.WRITING: 60,
    Stage.VISUALIZING: 80,
    Stage.COMPLETE: 100,
}

AGENT_STAGES = {
    AgentId.RESEARCHER: Stage.RESEARCH,
    AgentId.STRATEGIST: Stage.STRATEGY,
    AgentId.WRITER: Stage.WRITING,
    AgentId.ARTIST: Stage.VISUALIZING,
}

STAGE_LABELS = {
    Stage.INPUT: {"en": "Input Configuration", "zh": "输入配置"},
    Stage.RESEARCH: {"en": "Research & Analysis", "zh": "研究与分析"},
    Stage.STRATEGY: {"en": "Strategy Planning", "zh": "策略规划"},
    Stage.WRITING: {"en": "Content Writing", "zh": "内容撰写"},
    Stage.VISUALIZING: {"en": "Image Generation", "zh": "图像生成"},
    Stage.COMPLETE: {"en": "Complete", "zh": "完成"},
}


def stage_index(stage: Stage) -> int:
    return STAGE_ORDER.index(stage)


def stage_label(stage: Stage, ui_language: str = "en") -> str:
    labels = STAGE_LABELS[stage]
    return labels.get(ui_language, labels["en"])


def advance(stage: Stage, progress: int, agent_id: str) -> tuple[Stage, int]:
    """Raise (stage, progress) for an event from `agent_id`; never lowers either."""
    try:
        target = AGENT_STAGES.get(AgentId(agent_id))
    except ValueError:
        target = None
    if target is None:
        return stage, progress

    if stage_index(target) > stage_index(stage):
        stage = target
    return stage, max(progress, STAGE_PROGRESS[target])


def complete() -> tuple[Stage, int]:
    return Stage.COMPLETE, STAGE_PROGRESS[Stage.COMPLETE]
