"""
Pydantic schemas for the analysis and creation pipelines.

Wire names follow the camelCase used by the web client and by the prompts
(articleId, keyPoints, insertAfterParagraph, ...); Python attributes stay
snake_case. Every model accepts either form on input.
"""
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


DEFAULT_CONTENT_TYPE = "未分类"
DEFAULT_IMAGE_MODEL = "Kwai-Kolors/Kolors"
DEFAULT_CHAT_MODEL = "gpt-4o"


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting both spellings."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _none_to_empty_str(v):
    return "" if v is None else v


def _coerce_str_list(v):
    """Models sometimes return a bare string or null where a list is expected."""
    if v is None:
        return []
    if isinstance(v, str):
        return [v] if v.strip() else []
    if isinstance(v, (list, tuple)):
        return [str(item) for item in v if item is not None]
    return v


# =============================================================================
# PROVIDER CONFIGURATION
# =============================================================================

class AIConfig(CamelModel):
    """
    Chat-completion endpoint configuration (OpenAI compatible).

    Persisted under the "ai" setting as {"baseUrl", "apiKey", "model"}.
    """
    base_url: str = ""
    api_key: str = ""
    model: str = ""

    @field_validator("base_url", "api_key", "model", mode="before")
    @classmethod
    def strip_values(cls, v):
        return (v or "").strip()

    def missing_fields(self) -> List[str]:
        return [name for name in ("base_url", "api_key", "model") if not getattr(self, name)]


class ImageGenConfig(CamelModel):
    """Image generation endpoint configuration, persisted under "imageGen"."""
    base_url: str = ""
    api_key: str = ""
    model: str = DEFAULT_IMAGE_MODEL

    @field_validator("base_url", "api_key", mode="before")
    @classmethod
    def strip_values(cls, v):
        return (v or "").strip()

    @field_validator("model", mode="before")
    @classmethod
    def default_model(cls, v):
        return (v or "").strip() or DEFAULT_IMAGE_MODEL

    @property
    def available(self) -> bool:
        return bool(self.base_url and self.api_key)


class WritingPreferences(CamelModel):
    """Article style preferences, persisted under "preferences"."""
    style: str = "professional"
    min_words: int = 1500
    max_words: int = 2500

    @field_validator("style", mode="before")
    @classmethod
    def default_style(cls, v):
        return v or "professional"


# =============================================================================
# ANALYSIS SCHEMAS
# =============================================================================

class SourceArticle(CamelModel):
    """Input article for summarization. Read-only to the pipeline."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    title: str
    content: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def id_to_str(cls, v):
        return str(v)

    @field_validator("title", "content", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return _none_to_empty_str(v)


class ArticleSummary(CamelModel):
    """Structured summary of one source article."""
    article_id: str
    title: str
    summary: str = ""
    key_points: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)
    content_type: str = DEFAULT_CONTENT_TYPE


class LLMSummaryResponse(CamelModel):
    """Expected model output for a single article summary."""
    summary: str = ""
    key_points: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)
    content_type: str = DEFAULT_CONTENT_TYPE

    @field_validator("summary", mode="before")
    @classmethod
    def summary_str(cls, v):
        return _none_to_empty_str(v)

    @field_validator("key_points", "keywords", "highlights", mode="before")
    @classmethod
    def ensure_list(cls, v):
        return _coerce_str_list(v)

    @field_validator("content_type", mode="before")
    @classmethod
    def default_content_type(cls, v):
        return v or DEFAULT_CONTENT_TYPE


class TopicInsight(CamelModel):
    """A content-strategy suggestion derived from many summaries."""
    id: str
    title: str
    description: str = ""
    evidence: str = ""
    suggested_topics: List[str] = Field(default_factory=list)
    related_articles: List[str] = Field(default_factory=list)


class LLMInsight(CamelModel):
    """Single insight as returned by the model (no id)."""
    title: str = ""
    description: str = ""
    evidence: str = ""
    suggested_topics: List[str] = Field(default_factory=list)
    related_articles: List[str] = Field(default_factory=list)

    @field_validator("title", "description", "evidence", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return _none_to_empty_str(v)

    @field_validator("suggested_topics", "related_articles", mode="before")
    @classmethod
    def ensure_list(cls, v):
        return _coerce_str_list(v)


class LLMInsightsResponse(CamelModel):
    """Expected model output for insight synthesis."""
    insights: List[LLMInsight] = Field(default_factory=list)


class InsightAnalysisRequest(CamelModel):
    """Body of POST /api/insights."""
    search_id: Optional[int] = None
    keyword: str = ""
    force_regenerate: bool = False


class InsightAnalysisResult(CamelModel):
    summaries: List[ArticleSummary] = Field(default_factory=list)
    insights: List[TopicInsight] = Field(default_factory=list)
    cached: bool = False


# =============================================================================
# CREATION SCHEMAS
# =============================================================================

class InsightSource(CamelModel):
    """The insight an article is written from."""
    title: str
    description: str = ""
    suggested_topics: List[str] = Field(default_factory=list)
    related_articles: List[str] = Field(default_factory=list)

    @field_validator("suggested_topics", "related_articles", mode="before")
    @classmethod
    def ensure_list(cls, v):
        return _coerce_str_list(v)


class GenerateArticleRequest(CamelModel):
    """Body of POST /api/articles/generate."""
    insight_id: Optional[int] = None
    search_id: Optional[int] = None
    insight: Optional[InsightSource] = None
    keyword: str = ""
    style: Optional[str] = None
    fetch_images: bool = False
    image_count: int = Field(default=3, ge=1, le=6)


class GeneratedArticle(CamelModel):
    """Draft produced by the generating stage."""
    title: str
    content: str
    summary: str = ""
    image_keywords: List[str] = Field(default_factory=list)


class LLMArticleResponse(CamelModel):
    """Expected model output for article drafting."""
    title: str = ""
    content: str = ""
    summary: str = ""
    image_keywords: List[str] = Field(default_factory=list)

    @field_validator("title", "content", "summary", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return _none_to_empty_str(v)

    @field_validator("image_keywords", mode="before")
    @classmethod
    def ensure_list(cls, v):
        return _coerce_str_list(v)


class ImagePlacement(CamelModel):
    """Planned image: English prompt, 1-based paragraph to follow, caption."""
    prompt: str
    insert_after_paragraph: int
    description: str = ""


class LLMImagePlacement(CamelModel):
    """Single placement as returned by the model, before clamping."""
    prompt: str = ""
    insert_after_paragraph: Optional[int] = None
    description: str = ""

    @field_validator("prompt", "description", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return _none_to_empty_str(v)

    @field_validator("insert_after_paragraph", mode="before")
    @classmethod
    def coerce_position(cls, v):
        """Accept "3" or 3.0; anything unusable becomes None (clamped later)."""
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, float):
            return int(v)
        if isinstance(v, str):
            v = v.strip()
            return int(v) if v.lstrip("-").isdigit() else None
        return v


class LLMImagePlacementsResponse(CamelModel):
    """Expected model output for image planning."""
    images: List[LLMImagePlacement] = Field(default_factory=list)


class GeneratedImage(CamelModel):
    """Result of one successful image synthesis."""
    url: str
    seed: Optional[int] = None


ProgressStep = Literal[
    "validating",
    "generating",
    "generating_prompts",
    "generating_images",
    "saving",
    "completed",
    "error",
]

TERMINAL_STEPS = ("completed", "error")


class GenerationProgress(CamelModel):
    """One progress event. Immutable once created."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    step: ProgressStep
    message: str
    progress: int = Field(ge=0, le=100)
    data: Optional[Any] = None

    @property
    def is_terminal(self) -> bool:
        return self.step in TERMINAL_STEPS

    def to_wire(self) -> dict:
        payload = {"step": self.step, "message": self.message, "progress": self.progress}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class ArticleCreate(CamelModel):
    """Fields persisted for a finished article."""
    title: str
    content: str
    cover_image: str = ""
    images: List[str] = Field(default_factory=list)
    source: str = ""
    source_insight_id: Optional[int] = None
    source_search_id: Optional[int] = None
