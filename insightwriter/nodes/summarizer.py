"""
Bounded-concurrency batch summarization.

Articles are processed in consecutive chunks of `concurrency`; chunks run one
after another and the articles inside a chunk run concurrently. A failed call
or unparseable output degrades that article to an empty summary, so a batch
of N yields N summaries in input order. When every call in the batch failed
the last ModelCallError is raised instead.
"""
import asyncio
import inspect
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, Union

import structlog

from insightwriter.shared.exceptions import ModelCallError
from .llm import ModelClient, parse_model_json
from .prompts import SUMMARY_PROMPT, SUMMARY_SYSTEM_PROMPT
from .schemas import ArticleSummary, LLMSummaryResponse, SourceArticle

logger = structlog.get_logger()

# Characters of article body sent to the model
MAX_CONTENT_CHARS = 3000

ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]


def fallback_summary(article: SourceArticle) -> ArticleSummary:
    return ArticleSummary(article_id=article.id, title=article.title)


async def extract_article_summary(
    client: ModelClient,
    article: SourceArticle,
) -> ArticleSummary:
    """
    Summarize one article.

    Unparseable output resolves to the empty fallback summary;
    ModelCallError propagates.
    """
    prompt = SUMMARY_PROMPT.format(
        title=article.title,
        content=article.content[:MAX_CONTENT_CHARS] or "(无内容)",
    )
    messages = [
        {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]

    raw = await client.call(messages)
    parsed = parse_model_json(raw, LLMSummaryResponse, fallback=None)
    if parsed is None:
        return fallback_summary(article)

    return ArticleSummary(
        article_id=article.id,
        title=article.title,
        summary=parsed.summary,
        key_points=parsed.key_points,
        keywords=parsed.keywords,
        highlights=parsed.highlights,
        content_type=parsed.content_type,
    )


async def _summarize_slot(
    client: ModelClient,
    article: SourceArticle,
) -> Tuple[ArticleSummary, Optional[ModelCallError]]:
    try:
        return await extract_article_summary(client, article), None
    except ModelCallError as e:
        logger.warning("article_summary_call_failed", article_id=article.id, error=str(e))
        return fallback_summary(article), e


async def batch_summarize(
    client: ModelClient,
    articles: Sequence[SourceArticle],
    concurrency: int = 3,
    on_progress: Optional[ProgressCallback] = None,
) -> List[ArticleSummary]:
    """
    Summarize every article with at most `concurrency` model calls in flight.

    on_progress(completed, total) fires once per chunk; it may be a plain
    function or a coroutine function.

    Raises:
        ModelCallError: every model call in the batch failed
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    total = len(articles)
    results: List[ArticleSummary] = []
    completed = 0
    errors: List[ModelCallError] = []

    logger.info("batch_summarize_started", total=total, concurrency=concurrency)

    for start in range(0, total, concurrency):
        chunk = articles[start:start + concurrency]
        chunk_results = await asyncio.gather(
            *(_summarize_slot(client, article) for article in chunk)
        )
        for summary, error in chunk_results:
            results.append(summary)
            if error is not None:
                errors.append(error)
        completed += len(chunk)

        if on_progress is not None:
            outcome = on_progress(completed, total)
            if inspect.isawaitable(outcome):
                await outcome

        logger.info("batch_summarize_chunk_done", completed=completed, total=total)

    if total and len(errors) == total:
        logger.error("batch_summarize_all_failed", total=total, error=str(errors[-1]))
        raise errors[-1]

    return results
