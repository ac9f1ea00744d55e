"""
Database operations backing the pipelines' collaborator contracts.

ArticleStore is the single place SQL lives. The generation pipeline only
needs get_setting / get_search_by_id / create_article; the analysis half also
reads source articles and reads/writes summaries and insights.
"""
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from insightwriter.shared.database import get_db_session
from insightwriter.shared.exceptions import PersistenceError
from insightwriter.shared.models import (
    Article,
    ArticleSummaryRecord,
    SearchRecord,
    Setting,
    SourceArticleRecord,
    TopicInsightRecord,
)
from .schemas import ArticleCreate, ArticleSummary, SourceArticle, TopicInsight

logger = structlog.get_logger()


class ArticleStore:
    """
    Async SQLAlchemy store.

    Args:
        session_maker: session factory; the process-wide one is used when omitted
    """

    def __init__(self, session_maker: Optional[async_sessionmaker] = None) -> None:
        self._session_maker = session_maker

    def _session(self):
        return get_db_session(self._session_maker)

    # =========================================================================
    # SETTINGS
    # =========================================================================

    async def get_setting(self, key: str) -> Optional[str]:
        async with self._session() as db:
            result = await db.execute(select(Setting.value).where(Setting.key == key))
            return result.scalar_one_or_none()

    async def set_setting(self, key: str, value: str) -> None:
        async with self._session() as db:
            existing = await db.get(Setting, key)
            if existing is None:
                db.add(Setting(key=key, value=value))
            else:
                existing.value = value
        logger.info("setting_saved", key=key)

    # =========================================================================
    # SEARCHES AND SOURCE ARTICLES
    # =========================================================================

    async def create_search_record(self, keyword: str, search_type: str = "keyword") -> int:
        async with self._session() as db:
            record = SearchRecord(keyword=keyword, search_type=search_type, status="pending")
            db.add(record)
            await db.flush()
            return record.id

    async def get_search_by_id(self, search_id: int) -> Optional[SearchRecord]:
        async with self._session() as db:
            return await db.get(SearchRecord, search_id)

    async def update_search_status(
        self,
        search_id: int,
        status: str,
        article_count: Optional[int] = None,
    ) -> None:
        values: Dict[str, Any] = {"status": status}
        if article_count is not None:
            values["article_count"] = article_count
        async with self._session() as db:
            await db.execute(update(SearchRecord).where(SearchRecord.id == search_id).values(**values))

    async def save_source_articles(self, search_id: int, articles: Sequence[Dict[str, Any]]) -> List[int]:
        """Insert raw source articles (title, content, source_url, counts)."""
        async with self._session() as db:
            records = [
                SourceArticleRecord(
                    search_id=search_id,
                    title=a.get("title", ""),
                    content=a.get("content", ""),
                    source_url=a.get("source_url"),
                    read_count=a.get("read_count", 0),
                    like_count=a.get("like_count", 0),
                )
                for a in articles
            ]
            db.add_all(records)
            await db.flush()
            return [r.id for r in records]

    async def get_source_articles(self, search_id: int) -> List[SourceArticle]:
        async with self._session() as db:
            result = await db.execute(
                select(SourceArticleRecord)
                .where(SourceArticleRecord.search_id == search_id)
                .order_by(SourceArticleRecord.id)
            )
            return [
                SourceArticle(id=r.id, title=r.title, content=r.content or "")
                for r in result.scalars().all()
            ]

    # =========================================================================
    # SUMMARIES AND INSIGHTS
    # =========================================================================

    async def save_article_summaries(self, search_id: int, summaries: Sequence[ArticleSummary]) -> None:
        async with self._session() as db:
            db.add_all([
                ArticleSummaryRecord(
                    search_id=search_id,
                    article_id=int(s.article_id),
                    title=s.title,
                    summary=s.summary,
                    key_points=list(s.key_points),
                    keywords=list(s.keywords),
                    highlights=list(s.highlights),
                    content_type=s.content_type,
                )
                for s in summaries
            ])
        logger.info("article_summaries_saved", search_id=search_id, count=len(summaries))

    async def get_article_summaries(self, search_id: int) -> List[ArticleSummary]:
        async with self._session() as db:
            result = await db.execute(
                select(ArticleSummaryRecord)
                .where(ArticleSummaryRecord.search_id == search_id)
                .order_by(ArticleSummaryRecord.id)
            )
            return [
                ArticleSummary(
                    article_id=str(r.article_id),
                    title=r.title,
                    summary=r.summary or "",
                    key_points=r.key_points or [],
                    keywords=r.keywords or [],
                    highlights=r.highlights or [],
                    content_type=r.content_type or "未分类",
                )
                for r in result.scalars().all()
            ]

    async def save_topic_insights(self, search_id: int, insights: Sequence[TopicInsight]) -> List[TopicInsight]:
        """Persist insights; returned copies carry the database ids."""
        async with self._session() as db:
            records = [
                TopicInsightRecord(
                    search_id=search_id,
                    title=i.title,
                    description=i.description,
                    evidence=i.evidence,
                    suggested_topics=list(i.suggested_topics),
                    related_articles=list(i.related_articles),
                )
                for i in insights
            ]
            db.add_all(records)
            await db.flush()
            saved = [_insight_from_record(r) for r in records]
        logger.info("topic_insights_saved", search_id=search_id, count=len(saved))
        return saved

    async def get_topic_insights(self, search_id: int) -> List[TopicInsight]:
        async with self._session() as db:
            result = await db.execute(
                select(TopicInsightRecord)
                .where(TopicInsightRecord.search_id == search_id)
                .order_by(TopicInsightRecord.id)
            )
            return [_insight_from_record(r) for r in result.scalars().all()]

    async def delete_analysis(self, search_id: int) -> None:
        """Drop stored summaries and insights ahead of a forced regeneration."""
        async with self._session() as db:
            await db.execute(delete(TopicInsightRecord).where(TopicInsightRecord.search_id == search_id))
            await db.execute(delete(ArticleSummaryRecord).where(ArticleSummaryRecord.search_id == search_id))
        logger.info("analysis_deleted", search_id=search_id)

    # =========================================================================
    # ARTICLES
    # =========================================================================

    async def create_article(self, fields: ArticleCreate) -> int:
        """
        Persist a finished article and return its id.

        Raises:
            PersistenceError: the insert failed; nothing was written
        """
        try:
            async with self._session() as db:
                article = Article(
                    title=fields.title,
                    content=fields.content,
                    cover_image=fields.cover_image,
                    images=list(fields.images),
                    source=fields.source,
                    source_insight_id=fields.source_insight_id,
                    source_search_id=fields.source_search_id,
                )
                db.add(article)
                await db.flush()
                article_id = article.id
        except SQLAlchemyError as e:
            logger.error("article_save_failed", title=fields.title[:50], error=str(e))
            raise PersistenceError(f"保存文章失败: {e}") from e

        logger.info("article_saved", article_id=article_id, images=len(fields.images))
        return article_id

    async def get_article(self, article_id: int) -> Optional[Article]:
        async with self._session() as db:
            return await db.get(Article, article_id)


def _insight_from_record(record: TopicInsightRecord) -> TopicInsight:
    return TopicInsight(
        id=str(record.id),
        title=record.title,
        description=record.description or "",
        evidence=record.evidence or "",
        suggested_topics=record.suggested_topics or [],
        related_articles=record.related_articles or [],
    )
