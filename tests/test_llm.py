import asyncio
import json

import httpx
import pytest

from insightwriter.nodes.llm import (
    ModelClient,
    fallback_article,
    generate_article,
    load_model_json,
    parse_model_json,
    strip_code_fences,
)
from insightwriter.nodes.schemas import InsightSource, LLMSummaryResponse, WritingPreferences
from insightwriter.shared.exceptions import ModelCallError, ModelParseError
from tests.fakes import FakeModelClient, ai_config, article_json


def run_with_transport(handler, coro_fn):
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            client = ModelClient(ai_config(), timeout=5, http_client=http_client)
            return await coro_fn(client)
    return asyncio.run(main())


class TestModelClient:
    def test_posts_chat_completion_request(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "hello"}}]})

        result = run_with_transport(handler, lambda c: c.call([{"role": "user", "content": "hi"}]))

        assert result == "hello"
        assert seen["url"] == "https://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"] == {
            "model": "test-model",
            "messages": [{"role": "user", "content": "hi"}],
            "temperature": 0.7,
        }

    def test_endpoint_ignores_trailing_slash(self):
        config = ai_config().model_copy(update={"base_url": "https://llm.test/v1/"})
        assert ModelClient(config).endpoint == "https://llm.test/v1/chat/completions"

    def test_non_2xx_raises_with_status_and_body(self):
        def handler(request):
            return httpx.Response(429, text="rate limited")

        with pytest.raises(ModelCallError) as exc_info:
            run_with_transport(handler, lambda c: c.call([]))

        assert exc_info.value.status_code == 429
        assert exc_info.value.body == "rate limited"
        assert "429" in str(exc_info.value)

    def test_transport_failure_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ModelCallError) as exc_info:
            run_with_transport(handler, lambda c: c.call([]))

        assert exc_info.value.status_code is None

    def test_missing_content_returns_empty_string(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        assert run_with_transport(handler, lambda c: c.call([])) == ""


class TestJsonExtraction:
    def test_strips_json_fences(self):
        raw = '```json\n{"summary": "ok"}\n```'
        assert strip_code_fences(raw) == '{"summary": "ok"}'

    def test_fenced_json_parses(self):
        raw = '```json\n{"summary": "ok", "keywords": ["a"]}\n```'
        parsed = load_model_json(raw, LLMSummaryResponse)
        assert parsed.summary == "ok"
        assert parsed.keywords == ["a"]

    def test_bare_fences_parse(self):
        parsed = load_model_json('```\n{"summary": "x"}\n```', LLMSummaryResponse)
        assert parsed.summary == "x"

    def test_invalid_json_raises_parse_error(self):
        with pytest.raises(ModelParseError):
            load_model_json("not json at all", LLMSummaryResponse)

    def test_parse_returns_fallback(self):
        fallback = LLMSummaryResponse(summary="fallback")
        assert parse_model_json("{broken", LLMSummaryResponse, fallback) is fallback

    def test_lenient_field_coercion(self):
        parsed = load_model_json('{"summary": null, "keyPoints": "one", "contentType": ""}', LLMSummaryResponse)
        assert parsed.summary == ""
        assert parsed.key_points == ["one"]
        assert parsed.content_type == "未分类"


class TestGenerateArticle:
    insight = InsightSource(title="洞察", description="描述", suggested_topics=["选题"])

    def test_parses_draft(self):
        client = FakeModelClient([article_json(title="标题")])
        article = asyncio.run(generate_article(client, self.insight, "关键词"))

        assert article.title == "标题"
        assert article.content.startswith("<p>")
        assert article.image_keywords == ["关键词"]

    def test_style_reaches_prompt(self):
        client = FakeModelClient([article_json()])
        prefs = WritingPreferences(style="casual", min_words=800, max_words=1200)
        asyncio.run(generate_article(client, self.insight, "关键词", prefs))

        prompt = client.calls[0][1]["content"]
        assert "800-1200" in prompt
        assert "轻松" in prompt

    def test_unparseable_output_yields_fallback(self):
        client = FakeModelClient(["sorry, no json"])
        article = asyncio.run(generate_article(client, self.insight, "咖啡"))
        assert article == fallback_article("咖啡")

    def test_empty_title_gets_placeholder(self):
        client = FakeModelClient([article_json(title="")])
        article = asyncio.run(generate_article(client, self.insight, "咖啡"))
        assert article.title == "未命名文章"

    def test_call_error_propagates(self):
        client = FakeModelClient([ModelCallError("boom", status_code=500)])
        with pytest.raises(ModelCallError):
            asyncio.run(generate_article(client, self.insight, "咖啡"))
