import json
import logging
from typing import Any, AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from article_stream.core.dependencies import get_generation_service
from article_stream.schemas.article import FinalArticle
from article_stream.schemas.generation import GenerationConfig
from article_stream.schemas.session import SessionSnapshot
from article_stream.services.generation_service import GenerationService
from article_stream.services.normalizer import build_final_article
from article_stream.services.validity import is_valid_article, require_valid_article

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/articles", tags=["articles"])


class NormalizeRequest(BaseModel):
    payload: Any = Field(..., description="Terminal `done` payload, object or (re-)encoded string")
    strict: bool = Field(default=False, description="Reject payloads without a presentable article")


class NormalizeResponse(BaseModel):
    article: FinalArticle
    valid: bool


@router.post("/generate", summary="Generate an Article and Stream Session Snapshots")
async def generate_article(
    request: GenerationConfig,
    generation_service: GenerationService = Depends(get_generation_service),
):
    """
    NDJSON streaming endpoint: one session snapshot per processed backend frame.
    """
    logger.info(f"Received generation request for keyword: {request.keyword!r}")
    controller = generation_service.create_controller()

    async def response_generator() -> AsyncGenerator[bytes, None]:
        try:
            async for session in controller.stream_generation(request):
                snapshot = SessionSnapshot.from_session(session)
                yield snapshot.model_dump_json(by_alias=True).encode() + b"\n"
        except Exception as exc:
            logger.error(f"Generation relay error: {exc}", exc_info=True)
            error_response = {
                "event": "error",
                "data": {"type": exc.__class__.__name__, "message": str(exc)},
            }
            yield json.dumps(error_response).encode() + b"\n"
        finally:
            # client went away mid-stream
            if controller.session.is_generating:
                controller.cancel()

    return StreamingResponse(response_generator(), media_type="application/x-ndjson")


@router.post("/normalize", summary="Normalize a Terminal Payload", response_model=NormalizeResponse)
async def normalize_article(
    request: NormalizeRequest,
    generation_service: GenerationService = Depends(get_generation_service),
):
    article = build_final_article(
        request.payload, max_depth=generation_service.settings.MAX_NORMALIZE_DEPTH
    )
    if request.strict:
        require_valid_article(article)
    return NormalizeResponse(article=article, valid=is_valid_article(article))
