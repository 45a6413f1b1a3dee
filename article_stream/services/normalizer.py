"""
Content normalizer for terminal `done` payloads.

The writer agent's output reaches us serialized an unknown number of times:
a plain object, a JSON string of one, a fenced ```json block, or an object
whose body field is itself one of those. normalize_content peels those
layers back and returns only safe markdown plus whatever metadata it found
on the way.

Policy: anything that still looks like serialized data after unwrapping is
dropped, never shown. Brace-led prose that merely resembles JSON is lost
along with it.
"""

import json
import logging
import re
from typing import Any, Optional

from pydantic import ValidationError

from article_stream.schemas.article import (
    ArticleImage,
    FinalArticle,
    NormalizedContent,
    QualityReview,
    SeoMeta,
)

logger = logging.getLogger(__name__)

MAX_DEPTH = 5

# Preference order for the article body on an object payload.
BODY_FIELDS = ("article_body", "content", "markdown")

# (camelCase, snake_case) spellings, camelCase preferred.
METADATA_FIELDS = {
    "seo_meta": ("seoMeta", "seo_meta"),
    "quality_review": ("qualityReview", "quality_review"),
    "geo_score": ("geoScore", "geo_score"),
    "logic_check": ("logicCheck", "logic_check"),
    "title": ("title",),
}

# Fences whose body is prose and may be unwrapped even when it is not JSON.
PROSE_FENCE_TAGS = {"", "markdown", "md", "text"}

_FENCE_OPEN = re.compile(r"^```([\w+-]*)[ \t]*\r?\n?")
_FENCE_CLOSE = re.compile(r"\r?\n?[ \t]*```[ \t]*$")

# "{" followed by a quoted key and a colon, optionally backslash-escaped.
_OBJECT_HINT = re.compile(r'^\{\s*\\?"[^"\n]*?\\?"\s*:')
_ARRAY_HINT = re.compile(
    r'^\[\s*(?:\{\s*\\?"[^"\n]*?\\?"\s*:|\[\s*(?:[\[{"\d-]|\])|\\?"[^"\n]*?\\?"\s*[,\]])'
)
_QUOTED_HINT = re.compile(r'^"\s*(?:[\{\[]|\\")')

_UNPARSEABLE = object()


def _unwrap_fence(text: str) -> tuple[str, Optional[str]]:
    """
    Strip one surrounding code fence. Returns (body, language) or
    (text, None) when the text is not a single fenced block.
    """
    match = _FENCE_OPEN.match(text)
    if not match:
        return text, None
    body = _FENCE_CLOSE.sub("", text[match.end():], count=1)
    if "```" in body:
        # several blocks: this is real markdown, not a wrapper
        return text, None
    return body.strip(), match.group(1).lower()


def _has_json_delimiters(text: str) -> bool:
    if not text:
        return False
    if text[0] in "{[":
        return True
    return len(text) >= 2 and text[0] == '"' and text[-1] == '"'


def looks_like_json(text: str) -> bool:
    """True if text opens like a serialized object/array/string, parseable or not."""
    text = text.strip()
    return bool(
        _OBJECT_HINT.match(text) or _ARRAY_HINT.match(text) or _QUOTED_HINT.match(text)
    )


def _try_parse(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return _UNPARSEABLE


def is_bare_json(text: Any) -> bool:
    """True if text is a complete JSON object or array."""
    if not isinstance(text, str):
        return False
    stripped = text.strip()
    if not stripped or stripped[0] not in "{[":
        return False
    return isinstance(_try_parse(stripped), (dict, list))


def _pick(record: dict, names: tuple[str, ...]) -> Any:
    for name in names:
        value = record.get(name)
        if isinstance(value, str) and not value.strip():
            continue
        if value not in (None, {}, []):
            return value
    return None


def _outer_metadata(record: dict) -> dict:
    return {field: _pick(record, names) for field, names in METADATA_FIELDS.items()}


def _merge(content: str, outer: dict, inner: NormalizedContent) -> NormalizedContent:
    merged = {
        field: outer.get(field) if outer.get(field) is not None else getattr(inner, field)
        for field in METADATA_FIELDS
    }
    return NormalizedContent(content=content, **merged)


def _normalize_string(value: str, depth: int, max_depth: int) -> NormalizedContent:
    text = value.strip()
    if not text:
        return NormalizedContent()

    candidate, language = _unwrap_fence(text)
    if _has_json_delimiters(candidate):
        parsed = _try_parse(candidate)
        if parsed is not _UNPARSEABLE:
            return normalize_content(parsed, depth + 1, max_depth=max_depth)
        if looks_like_json(candidate):
            logger.warning(
                f"Dropping unparseable serialized content at depth {depth}: {candidate[:80]!r}"
            )
            return NormalizedContent()

    if language in PROSE_FENCE_TAGS:
        return NormalizedContent(content=candidate)
    return NormalizedContent(content=text)


def _normalize_record(record: dict, depth: int, max_depth: int) -> NormalizedContent:
    outer = _outer_metadata(record)
    body = _pick(record, BODY_FIELDS)

    inner = normalize_content(body, depth + 1, max_depth=max_depth)

    result = _merge(inner.content, outer, inner)

    # Safety pass: whatever survived must not be a serialized blob.
    if looks_like_json(result.content) or is_bare_json(result.content):
        parsed = _try_parse(result.content.strip())
        if isinstance(parsed, dict):
            again = normalize_content(parsed, depth + 1, max_depth=max_depth)
            result = _merge(again.content, outer, again)
        if looks_like_json(result.content) or is_bare_json(result.content):
            logger.warning("Discarding content that is still serialized after unwrapping")
            result = result.model_copy(update={"content": ""})
    return result


def normalize_content(payload: Any, depth: int = 0, max_depth: int = MAX_DEPTH) -> NormalizedContent:
    """
    Reduce an arbitrarily re-encoded payload to safe content + metadata.

    Strings are trimmed, unfenced and parsed when they look like JSON;
    objects contribute their body field and metadata; everything else is
    empty. Recursion stops past `max_depth` with empty content.
    """
    if depth > max_depth:
        logger.warning(f"Normalization depth limit {max_depth} reached, dropping payload")
        return NormalizedContent()

    if isinstance(payload, str):
        return _normalize_string(payload, depth, max_depth)
    if isinstance(payload, dict):
        return _normalize_record(payload, depth, max_depth)
    return NormalizedContent()


def _find_record(payload: Any, max_depth: int = MAX_DEPTH) -> Optional[dict]:
    """Peel string layers until the outermost article object shows up."""
    current = payload
    for _ in range(max_depth + 1):
        if isinstance(current, dict):
            return current
        if not isinstance(current, str):
            return None
        candidate, _language = _unwrap_fence(current.strip())
        if not _has_json_delimiters(candidate):
            return None
        current = _try_parse(candidate)
        if current is _UNPARSEABLE:
            return None
    return None


def _images(raw: Any) -> list[ArticleImage]:
    if not isinstance(raw, list):
        return []
    images = []
    for item in raw:
        if isinstance(item, dict) and isinstance(item.get("url"), str) and item["url"]:
            image = _as_model(ArticleImage, item)
            if image is not None:
                images.append(image)
    return images


def _as_model(model, value: Any):
    if not isinstance(value, dict):
        return None
    try:
        return model.model_validate(value)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed {model.__name__}: {e.error_count()} error(s)")
        return None


def build_final_article(payload: Any, max_depth: int = MAX_DEPTH) -> FinalArticle:
    """Assemble the session's FinalArticle from a terminal `done` payload."""
    normalized = normalize_content(payload, max_depth=max_depth)
    record = _find_record(payload, max_depth) or {}

    seo_meta = _as_model(SeoMeta, normalized.seo_meta)
    quality_review = _as_model(QualityReview, normalized.quality_review)
    if quality_review is None and (normalized.geo_score is not None or normalized.logic_check is not None):
        quality_review = QualityReview(geo_score=normalized.geo_score, logic_check=normalized.logic_check)
    elif quality_review is not None:
        if quality_review.geo_score is None:
            quality_review.geo_score = normalized.geo_score
        if quality_review.logic_check is None:
            quality_review.logic_check = normalized.logic_check

    title = normalized.title if isinstance(normalized.title, str) else ""
    if not title.strip() and seo_meta is not None and seo_meta.title:
        title = seo_meta.title

    return FinalArticle(
        title=title.strip(),
        content=normalized.content,
        images=_images(record.get("images")),
        seo_meta=seo_meta,
        quality_review=quality_review,
        geo_score=normalized.geo_score,
        logic_check=normalized.logic_check,
        draft_id=record.get("draftId"),
        project_id=record.get("projectId"),
    )
