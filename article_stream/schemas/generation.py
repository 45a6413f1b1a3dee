from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Output language implied by the target market when none is given.
MARKET_LANGUAGES = {
    "global": "en",
    "us": "en",
    "uk": "en",
    "ca": "en",
    "au": "en",
    "de": "de",
    "fr": "fr",
    "jp": "ja",
    "cn": "zh",
}


def language_for_market(market: Optional[str]) -> str:
    return MARKET_LANGUAGES.get((market or "global").lower(), "en")


class ReferenceDocument(BaseModel):
    filename: str
    content: str


class ReferenceUrl(BaseModel):
    url: str
    content: Optional[str] = None
    screenshot: Optional[str] = None
    title: Optional[str] = None


class Reference(BaseModel):
    type: Literal["document", "url"]
    document: Optional[ReferenceDocument] = None
    url: Optional[ReferenceUrl] = None

    @model_validator(mode="after")
    def _matches_type(self) -> "Reference":
        if self.type == "document" and self.document is None:
            raise ValueError("document reference requires a document")
        if self.type == "url" and self.url is None:
            raise ValueError("url reference requires a url")
        return self


class GenerationConfig(BaseModel):
    """Body of the generation POST. Serialized with camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True)

    keyword: str = Field(..., min_length=1, description="Seed keyword for the article")
    tone: str = "professional"
    target_audience: Literal["beginner", "expert"] = Field(default="beginner", alias="targetAudience")
    visual_style: str = Field(default="realistic", alias="visualStyle")
    target_market: str = Field(default="global", alias="targetMarket")
    reference: Optional[Reference] = None
    promoted_websites: List[str] = Field(default_factory=list, alias="promotedWebsites")
    promotion_intensity: str = Field(default="natural", alias="promotionIntensity")
    target_language: Optional[str] = Field(default=None, alias="targetLanguage")
    ui_language: Literal["en", "zh"] = Field(default="en", alias="uiLanguage")

    @model_validator(mode="after")
    def _default_target_language(self) -> "GenerationConfig":
        if not self.target_language:
            self.target_language = language_for_market(self.target_market)
        return self

    def to_request_body(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
