"""
Chat-completion client and model-output parsing.

ModelClient issues exactly one request per call and never retries; callers
decide how a failure degrades. Model text is parsed against a strict pydantic
schema, with an explicit fallback value supplied by every call site so a
malformed response never crashes a pipeline.
"""
import re
from typing import Dict, List, Optional, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from insightwriter.shared.exceptions import ModelCallError, ModelParseError
from .prompts import ARTICLE_PROMPT, ARTICLE_SYSTEM_PROMPT, STYLE_GUIDE
from .schemas import (
    AIConfig,
    GeneratedArticle,
    InsightSource,
    LLMArticleResponse,
    WritingPreferences,
)

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

TEMPERATURE = 0.7

ChatMessage = Dict[str, str]


class ModelClient:
    """
    OpenAI-compatible chat-completion client.

    Args:
        config: endpoint, key and model
        timeout: request timeout in seconds
        http_client: shared httpx client; a short-lived one is created per
            call when omitted
    """

    def __init__(
        self,
        config: AIConfig,
        timeout: float = 120,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.timeout = timeout
        self._http_client = http_client

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/chat/completions"

    async def call(self, messages: List[ChatMessage]) -> str:
        """
        Send one chat-completion request and return the assistant text.

        Raises:
            ModelCallError: non-2xx response or transport failure
        """
        request_body = {
            "model": self.config.model,
            "messages": messages,
            "temperature": TEMPERATURE,
        }
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.endpoint, headers=headers, json=request_body, timeout=self.timeout,
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.endpoint, headers=headers, json=request_body)
        except httpx.HTTPError as e:
            logger.error("model_call_transport_failed", model=self.config.model, error=str(e))
            raise ModelCallError(f"AI API 调用失败: {e}") from e

        if response.is_error:
            body = response.text
            logger.error(
                "model_call_failed",
                model=self.config.model,
                status=response.status_code,
                body=body[:200],
            )
            raise ModelCallError(
                f"AI API 调用失败: {response.status_code} - {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("model_response_without_content", model=self.config.model)
            return ""


# =============================================================================
# JSON EXTRACTION
# =============================================================================

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)


def strip_code_fences(raw: str) -> str:
    """Remove ```json / ``` markers the model wraps around JSON, then trim."""
    return _FENCE_RE.sub("", raw or "").strip()


def load_model_json(raw: str, response_model: Type[T]) -> T:
    """
    Parse model text into response_model.

    Raises:
        ModelParseError: text is not JSON or does not match the schema
    """
    cleaned = strip_code_fences(raw)
    try:
        return response_model.model_validate_json(cleaned)
    except ValidationError as e:
        raise ModelParseError(
            f"Model output does not match {response_model.__name__}",
            detail=str(e),
        ) from e
    except ValueError as e:
        raise ModelParseError("Model output is not valid JSON", detail=str(e)) from e


def parse_model_json(raw: str, response_model: Type[T], fallback: T) -> T:
    """Parse model text, returning fallback instead of raising on bad output."""
    try:
        return load_model_json(raw, response_model)
    except ModelParseError as e:
        logger.warning(
            "model_parse_failed",
            schema=response_model.__name__,
            error=str(e),
            response_preview=(raw or "")[:200] or "EMPTY",
        )
        return fallback


# =============================================================================
# ARTICLE DRAFTING
# =============================================================================

def fallback_article(keyword: str) -> GeneratedArticle:
    """Error-marker draft used when the model output cannot be parsed."""
    return GeneratedArticle(
        title=f"关于{keyword}的深度解析",
        content="<p>文章生成失败，请重试。</p>",
        summary="文章生成失败",
        image_keywords=[keyword],
    )


def build_article_messages(
    insight: InsightSource,
    keyword: str,
    preferences: WritingPreferences,
) -> List[ChatMessage]:
    style_guide = STYLE_GUIDE.get(preferences.style, STYLE_GUIDE["professional"])
    prompt = ARTICLE_PROMPT.format(
        insight_title=insight.title,
        insight_description=insight.description,
        suggested_topics="、".join(insight.suggested_topics),
        related_articles="、".join(insight.related_articles),
        keyword=keyword,
        style_guide=style_guide,
        min_words=preferences.min_words,
        max_words=preferences.max_words,
    )
    return [
        {"role": "system", "content": ARTICLE_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


async def generate_article(
    client: ModelClient,
    insight: InsightSource,
    keyword: str,
    preferences: Optional[WritingPreferences] = None,
) -> GeneratedArticle:
    """
    Draft a full HTML article from an insight.

    ModelCallError propagates; unparseable output yields fallback_article().
    """
    preferences = preferences or WritingPreferences()
    messages = build_article_messages(insight, keyword, preferences)

    raw = await client.call(messages)
    parsed = parse_model_json(raw, LLMArticleResponse, fallback=None)
    if parsed is None:
        return fallback_article(keyword)

    article = GeneratedArticle(
        title=parsed.title or "未命名文章",
        content=parsed.content,
        summary=parsed.summary,
        image_keywords=parsed.image_keywords,
    )

    logger.info(
        "article_draft_generated",
        title=article.title[:50],
        content_length=len(article.content),
        style=preferences.style,
    )
    return article
