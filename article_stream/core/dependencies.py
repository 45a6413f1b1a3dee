from fastapi import HTTPException, Request, status

from article_stream.core.constants import CONFIG_GENERATION_SERVICE
from article_stream.services.generation_service import GenerationService


def get_generation_service(request: Request) -> GenerationService:

    generation_service: GenerationService = getattr(request.app.state, CONFIG_GENERATION_SERVICE, None)
    if generation_service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Generation service not initialized",
        )
    return generation_service
