import asyncio
import json

import pytest

from insightwriter.nodes.insights import (
    MIN_INSIGHTS,
    build_summary_text,
    fallback_insight,
    insight_id,
    synthesize_insights,
)
from insightwriter.nodes.schemas import ArticleSummary
from insightwriter.shared.exceptions import ModelCallError
from tests.fakes import FakeModelClient

SUMMARIES = [
    ArticleSummary(article_id="1", title="咖啡入门", summary="入门", keywords=["咖啡", "入门"], highlights=["图解"]),
    ArticleSummary(article_id="2", title="手冲技巧", summary="技巧", content_type="教程"),
]


def _insights_json(n):
    return json.dumps({
        "insights": [
            {
                "title": f"洞察{i}",
                "description": "描述",
                "evidence": "证据",
                "suggestedTopics": ["选题"],
                "relatedArticles": ["咖啡入门"],
            }
            for i in range(n)
        ]
    }, ensure_ascii=False)


def test_insight_id_format():
    assert insight_id(3, timestamp_ms=1700000000000) == "insight-1700000000000-3"


def test_prompt_lists_every_summary():
    text = build_summary_text(SUMMARIES)
    assert "【文章1】咖啡入门" in text
    assert "【文章2】手冲技巧" in text
    assert "咖啡, 入门" in text
    assert "教程" in text


def test_parses_insights_with_synthesized_ids():
    client = FakeModelClient([_insights_json(5)])
    insights = asyncio.run(synthesize_insights(client, "咖啡", SUMMARIES))

    assert [i.title for i in insights] == [f"洞察{i}" for i in range(5)]
    assert all(i.id.startswith("insight-") for i in insights)
    assert [i.id.rsplit("-", 1)[1] for i in insights] == ["0", "1", "2", "3", "4"]
    assert str(MIN_INSIGHTS) in client.calls[0][1]["content"]


def test_fewer_than_requested_are_kept():
    client = FakeModelClient([_insights_json(2)])
    insights = asyncio.run(synthesize_insights(client, "咖啡", SUMMARIES))
    assert len(insights) == 2


def test_unparseable_output_falls_back():
    client = FakeModelClient(["I cannot do that"])
    insights = asyncio.run(synthesize_insights(client, "咖啡", SUMMARIES))

    assert len(insights) == 1
    assert insights[0].title == "咖啡 行业受众关注度极高"
    assert insights[0].related_articles == ["咖啡入门"]


def test_empty_list_falls_back():
    client = FakeModelClient(['{"insights": []}'])
    insights = asyncio.run(synthesize_insights(client, "咖啡", SUMMARIES))
    assert len(insights) == 1


def test_call_error_propagates():
    client = FakeModelClient([ModelCallError("down", status_code=503)])
    with pytest.raises(ModelCallError):
        asyncio.run(synthesize_insights(client, "咖啡", SUMMARIES))


def test_fallback_without_summaries_references_keyword():
    insight = fallback_insight("咖啡", [])
    assert insight.related_articles == ["咖啡"]
    assert "0 篇" in insight.evidence
