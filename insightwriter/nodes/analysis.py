"""
Insight analysis for one search: summaries first, then topic insights.

Stored results are served as-is unless regeneration is forced.
"""
from typing import Any, Callable, Optional, TYPE_CHECKING

import structlog

from insightwriter.shared.exceptions import (
    ConfigError,
    InvalidRequestError,
    ModelCallError,
    NotFoundError,
)
from .insights import synthesize_insights
from .llm import ModelClient
from .schemas import InsightAnalysisResult
from .summarizer import batch_summarize

if TYPE_CHECKING:
    from insightwriter.shared.config import ConfigProvider

logger = structlog.get_logger()


async def load_stored_analysis(store: Any, search_id: int) -> Optional[InsightAnalysisResult]:
    """Previously generated summaries and insights, or None when there are no insights."""
    insights = await store.get_topic_insights(search_id)
    if not insights:
        return None
    summaries = await store.get_article_summaries(search_id)
    return InsightAnalysisResult(summaries=summaries, insights=insights, cached=True)


async def run_insight_analysis(
    store: Any,
    config_provider: "ConfigProvider",
    search_id: Optional[int],
    keyword: str,
    force_regenerate: bool = False,
    concurrency: Optional[int] = None,
    model_client_factory: Callable[..., ModelClient] = ModelClient,
) -> InsightAnalysisResult:
    """
    Summarize every source article of a search and derive topic insights.

    Raises:
        InvalidRequestError: search_id or keyword missing
        ConfigError: model credentials missing or incomplete
        NotFoundError: the search has no source articles
        ModelCallError: every summary call, or the insight call, failed;
            nothing is stored and the search is marked failed
    """
    if not search_id or not keyword:
        raise InvalidRequestError("缺少必要参数")

    if not force_regenerate:
        cached = await load_stored_analysis(store, search_id)
        if cached is not None:
            logger.info("insight_analysis_cache_hit", search_id=search_id, insights=len(cached.insights))
            return cached

    ai_config = await config_provider.get_ai_config()
    if ai_config is None:
        raise ConfigError("请先配置 AI 接口（环境变量或设置页面）")
    if ai_config.missing_fields():
        raise ConfigError("AI 配置不完整，请检查 Base URL、API Key 和 Model")

    articles = await store.get_source_articles(search_id)
    if not articles:
        raise NotFoundError("未找到相关文章")

    client = model_client_factory(ai_config, timeout=config_provider.model_timeout)

    logger.info("insight_analysis_started", search_id=search_id, keyword=keyword, articles=len(articles))

    try:
        summaries = await batch_summarize(
            client,
            articles,
            concurrency=concurrency or config_provider.summary_concurrency,
        )
        insights = await synthesize_insights(client, keyword, summaries)
    except ModelCallError as e:
        logger.error("insight_analysis_model_failed", search_id=search_id, error=str(e))
        await store.update_search_status(search_id, "failed")
        raise

    # Nothing is stored or replaced until both model stages succeeded
    if force_regenerate:
        await store.delete_analysis(search_id)
    await store.save_article_summaries(search_id, summaries)
    saved_insights = await store.save_topic_insights(search_id, insights)
    await store.update_search_status(search_id, "completed", article_count=len(articles))

    logger.info(
        "insight_analysis_completed",
        search_id=search_id,
        summaries=len(summaries),
        insights=len(saved_insights),
    )
    return InsightAnalysisResult(summaries=summaries, insights=saved_insights, cached=False)
