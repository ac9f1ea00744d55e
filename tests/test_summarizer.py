import asyncio
import json

import pytest

from insightwriter.nodes.schemas import SourceArticle
from insightwriter.nodes.summarizer import (
    MAX_CONTENT_CHARS,
    batch_summarize,
    extract_article_summary,
)
from insightwriter.shared.exceptions import ModelCallError
from tests.fakes import FakeModelClient


def _articles(n):
    return [SourceArticle(id=i, title=f"文章{i}", content=f"内容{i}") for i in range(1, n + 1)]


def _summary_for(messages):
    """Echo the article title back so results can be matched to inputs."""
    prompt = messages[1]["content"]
    title = prompt.split("文章标题: ")[1].split("\n")[0]
    return json.dumps({"summary": f"摘要-{title}", "keywords": [title]}, ensure_ascii=False)


def test_extract_summary_parses_model_output():
    client = FakeModelClient(_summary_for)
    summary = asyncio.run(extract_article_summary(client, _articles(1)[0]))

    assert summary.article_id == "1"
    assert summary.title == "文章1"
    assert summary.summary == "摘要-文章1"
    assert summary.content_type == "未分类"


def test_extract_summary_truncates_content():
    client = FakeModelClient(_summary_for)
    article = SourceArticle(id=1, title="长文", content="字" * (MAX_CONTENT_CHARS + 500))
    asyncio.run(extract_article_summary(client, article))

    prompt = client.calls[0][1]["content"]
    assert "字" * MAX_CONTENT_CHARS in prompt
    assert "字" * (MAX_CONTENT_CHARS + 1) not in prompt


def test_unparseable_output_gives_empty_summary():
    client = FakeModelClient(["```json\nnot really json\n```"])
    summary = asyncio.run(extract_article_summary(client, _articles(1)[0]))

    assert summary.summary == ""
    assert summary.key_points == []
    assert summary.content_type == "未分类"
    assert summary.title == "文章1"


def test_batch_preserves_input_order():
    client = FakeModelClient(_summary_for)
    summaries = asyncio.run(batch_summarize(client, _articles(7), concurrency=3))

    assert [s.article_id for s in summaries] == [str(i) for i in range(1, 8)]
    assert [s.summary for s in summaries] == [f"摘要-文章{i}" for i in range(1, 8)]


def test_batch_survives_failed_calls():
    def respond(messages):
        if "文章2" in messages[1]["content"]:
            return ModelCallError("upstream down", status_code=502)
        if "文章4" in messages[1]["content"]:
            return "garbage"
        return _summary_for(messages)

    client = FakeModelClient(respond)
    summaries = asyncio.run(batch_summarize(client, _articles(5), concurrency=2))

    assert len(summaries) == 5
    assert [s.article_id for s in summaries] == ["1", "2", "3", "4", "5"]
    assert summaries[1].summary == ""
    assert summaries[3].summary == ""
    assert summaries[4].summary == "摘要-文章5"


def test_batch_raises_when_every_call_fails():
    client = FakeModelClient(lambda messages: ModelCallError("unauthorized", status_code=401))
    with pytest.raises(ModelCallError) as exc_info:
        asyncio.run(batch_summarize(client, _articles(3), concurrency=2))
    assert exc_info.value.status_code == 401


def test_progress_callback_per_chunk():
    calls = []
    client = FakeModelClient(_summary_for)
    asyncio.run(batch_summarize(client, _articles(3), concurrency=2, on_progress=lambda d, t: calls.append((d, t))))

    assert calls == [(2, 3), (3, 3)]


def test_async_progress_callback_is_awaited():
    calls = []

    async def on_progress(done, total):
        calls.append((done, total))

    client = FakeModelClient(_summary_for)
    asyncio.run(batch_summarize(client, _articles(4), concurrency=4, on_progress=on_progress))

    assert calls == [(4, 4)]


def test_concurrency_bounds_in_flight_calls():
    in_flight = {"now": 0, "max": 0}

    class SlowClient:
        async def call(self, messages):
            in_flight["now"] += 1
            in_flight["max"] = max(in_flight["max"], in_flight["now"])
            await asyncio.sleep(0.01)
            in_flight["now"] -= 1
            return _summary_for(messages)

    asyncio.run(batch_summarize(SlowClient(), _articles(8), concurrency=3))

    assert in_flight["max"] == 3


def test_empty_batch():
    calls = []
    client = FakeModelClient([])
    summaries = asyncio.run(batch_summarize(client, [], concurrency=3, on_progress=lambda d, t: calls.append(d)))

    assert summaries == []
    assert calls == []


def test_rejects_zero_concurrency():
    with pytest.raises(ValueError):
        asyncio.run(batch_summarize(FakeModelClient([]), _articles(1), concurrency=0))
