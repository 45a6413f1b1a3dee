from typing import Optional

from article_stream.core.exceptions import NormalizationFailure
from article_stream.schemas.article import FinalArticle
from article_stream.services.normalizer import is_bare_json


def is_valid_article(article: Optional[FinalArticle]) -> bool:
    """
    An article is presentable if it has a title, or body content that is
    not itself a serialized JSON object/array.
    """
    if article is None:
        return False
    if article.title and article.title.strip():
        return True
    content = (article.content or "").strip()
    return bool(content) and not is_bare_json(content)


def require_valid_article(article: Optional[FinalArticle]) -> FinalArticle:
    if not is_valid_article(article):
        raise NormalizationFailure("No valid article could be recovered from the payload")
    return article
