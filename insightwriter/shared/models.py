"""
Database models for insightwriter.

These tables back the collaborator contracts the pipelines consume:
- settings: key/value configuration (JSON strings for "ai", "imageGen", ...)
- search_records: one keyword search and its source articles
- article_summaries / topic_insights: output of the analysis half
- articles: finished articles produced by the generation pipeline

Schema migrations are out of scope; init_db() creates missing tables.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Text, Integer, DateTime, ForeignKey, Index, JSON,
)
from sqlalchemy.orm import declarative_base


def utc_now():
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


Base = declarative_base()


class Setting(Base):
    """Key/value settings. Structured values are stored as JSON strings."""
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class SearchRecord(Base):
    """A keyword (or account) search whose articles feed the analysis half."""
    __tablename__ = "search_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    keyword = Column(String(255), nullable=False, index=True)
    article_count = Column(Integer, default=0)
    search_type = Column(String(20), default="keyword")  # 'keyword' or 'account'
    status = Column(String(20), default="pending")       # pending, processing, completed, failed
    created_at = Column(DateTime(timezone=True), default=utc_now)


class SourceArticleRecord(Base):
    """A source article collected for a search."""
    __tablename__ = "source_articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    search_id = Column(Integer, ForeignKey("search_records.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text)
    source_url = Column(Text)
    read_count = Column(Integer, default=0)
    like_count = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        Index('idx_source_articles_search', search_id),
    )


class ArticleSummaryRecord(Base):
    """Persisted ArticleSummary. List fields are JSON arrays."""
    __tablename__ = "article_summaries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    search_id = Column(Integer, ForeignKey("search_records.id", ondelete="CASCADE"), nullable=False)
    article_id = Column(Integer, ForeignKey("source_articles.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    summary = Column(Text, default="")
    key_points = Column(JSON, default=list)
    keywords = Column(JSON, default=list)
    highlights = Column(JSON, default=list)
    content_type = Column(String(50), default="未分类")
    created_at = Column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        Index('idx_article_summaries_search', search_id),
    )


class TopicInsightRecord(Base):
    """Persisted TopicInsight."""
    __tablename__ = "topic_insights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    search_id = Column(Integer, ForeignKey("search_records.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, default="")
    evidence = Column(Text, default="")
    suggested_topics = Column(JSON, default=list)
    related_articles = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        Index('idx_topic_insights_search', search_id),
    )


class Article(Base):
    """A generated article. Created once, at the end of a successful run."""
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)  # HTML with <figure> blocks spliced in
    cover_image = Column(Text, default="")
    images = Column(JSON, default=list)     # image URLs in synthesis order
    status = Column(String(20), default="draft")
    source = Column(Text, default="")       # "{keyword} · {insight title}"
    source_insight_id = Column(Integer, nullable=True)
    source_search_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index('idx_articles_created_at', created_at.desc()),
    )
