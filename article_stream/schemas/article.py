"""
Schemas for the terminal article.

Flow overview:
1) The `done` frame carries an article-shaped payload (possibly re-encoded).
2) The normalizer reduces it to NormalizedContent (safe content + raw metadata).
3) build_final_article assembles a FinalArticle for the session.

The backend mixes camelCase and snake_case keys, so metadata fields accept
both and always serialize as camelCase.
"""

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ArticleImage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    prompt: str = ""
    placement: str = "inline"
    is_screenshot: bool = Field(
        default=False,
        validation_alias=AliasChoices("isScreenshot", "is_screenshot"),
        serialization_alias="isScreenshot",
    )


class SeoMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    description: Optional[str] = None


class QualityReview(BaseModel):
    """
    Reviewer scores. Only the four known keys are typed; reviewers are free
    to add more (verdict, total_score, ...), which are kept as extras.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    geo_score: Optional[Any] = Field(
        default=None,
        validation_alias=AliasChoices("geoScore", "geo_score"),
        serialization_alias="geoScore",
    )
    logic_check: Optional[Any] = Field(
        default=None,
        validation_alias=AliasChoices("logicCheck", "logic_check"),
        serialization_alias="logicCheck",
    )
    other_checks: Optional[Any] = Field(
        default=None,
        validation_alias=AliasChoices("otherChecks", "other_checks"),
        serialization_alias="otherChecks",
    )
    fix_list: List[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("fixList", "fix_list"),
        serialization_alias="fixList",
    )


class NormalizedContent(BaseModel):
    """
    Normalizer output.
    - content: markdown/prose, never a complete JSON object or array
    - metadata: raw values as found in the payload, outermost wins
    """

    content: str = ""
    title: Optional[Any] = None
    seo_meta: Optional[Any] = None
    quality_review: Optional[Any] = None
    geo_score: Optional[Any] = None
    logic_check: Optional[Any] = None


class FinalArticle(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    content: str = ""
    images: List[ArticleImage] = []
    seo_meta: Optional[SeoMeta] = Field(default=None, alias="seoMeta")
    quality_review: Optional[QualityReview] = Field(default=None, alias="qualityReview")
    geo_score: Optional[Any] = Field(default=None, alias="geoScore")
    logic_check: Optional[Any] = Field(default=None, alias="logicCheck")
    draft_id: Optional[Any] = Field(default=None, alias="draftId")
    project_id: Optional[Any] = Field(default=None, alias="projectId")
