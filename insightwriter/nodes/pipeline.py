"""
GenerationPipeline: insight -> finished, illustrated, persisted article.

Stages run strictly in order and report into a ProgressChannel:

    validating -> generating -> generating_prompts -> generating_images
    -> saving -> completed

Any exception raised by a stage ends the run with a single `error` event.
Only image synthesis degrades per slot; a failed image leaves a None in its
slot and the run continues. The Article row is written by the last stage, so
a failed or cancelled run never persists anything.
"""
import asyncio
from typing import Any, AsyncIterator, Callable, List, Optional, TYPE_CHECKING

import structlog

from insightwriter.shared.exceptions import ConfigError, InvalidRequestError
from .images import ImageGenerator, plan_image_placements
from .llm import ModelClient, generate_article
from .progress import ProgressChannel
from .schemas import (
    AIConfig,
    ArticleCreate,
    GenerateArticleRequest,
    GeneratedArticle,
    GeneratedImage,
    ImagePlacement,
    WritingPreferences,
)
from .splicer import insert_images_into_content, strip_image_markers

if TYPE_CHECKING:
    from insightwriter.shared.config import ConfigProvider

logger = structlog.get_logger()

DEFAULT_ERROR_MESSAGE = "生成文章失败"

# Progress window of the image loop: 70 + floor(i / n * 15)
IMAGES_START = 70
IMAGES_SPAN = 15
IMAGES_DONE = 85


class GenerationPipeline:
    """
    Runs one article generation per call to run().

    Args:
        store: collaborator exposing get_search_by_id() and create_article()
        config_provider: source of model/image credentials and preferences
        model_client_factory: builds the chat client from an AIConfig
        image_generator_factory: builds the image client from an ImageGenConfig
    """

    def __init__(
        self,
        store: Any,
        config_provider: "ConfigProvider",
        model_client_factory: Callable[..., ModelClient] = ModelClient,
        image_generator_factory: Callable[..., ImageGenerator] = ImageGenerator,
    ) -> None:
        self.store = store
        self.config_provider = config_provider
        self.model_client_factory = model_client_factory
        self.image_generator_factory = image_generator_factory

    async def run(self, request: GenerateArticleRequest, channel: ProgressChannel) -> None:
        """Drive the run to exactly one terminal event on `channel`."""
        try:
            await self._run(request, channel)
        except asyncio.CancelledError:
            logger.info("article_generation_cancelled", keyword=request.keyword)
            raise
        except Exception as e:
            logger.error(
                "article_generation_failed",
                keyword=request.keyword,
                progress=channel.last_progress,
                error=str(e),
                error_type=type(e).__name__,
            )
            if not channel.closed:
                channel.fail(str(e) or DEFAULT_ERROR_MESSAGE)

    async def _run(self, request: GenerateArticleRequest, channel: ProgressChannel) -> None:
        # Stage 1: validating
        channel.emit("validating", "正在验证配置...", 5)
        ai_config, preferences = await self._validate(request)
        channel.emit("validating", "配置验证完成", 10)

        client = self.model_client_factory(ai_config, timeout=self.config_provider.model_timeout)

        # Stage 2: generating
        channel.emit("generating", "AI 正在创作文章...", 15)
        article = await generate_article(client, request.insight, request.keyword, preferences)
        channel.emit("generating", "文章创作完成", 50)

        content = strip_image_markers(article.content)
        images: List[GeneratedImage] = []

        # Stages 3-4: generating_prompts / generating_images
        if request.fetch_images:
            content, images = await self._illustrate(request, client, article, content, channel)

        # Stage 5: saving
        channel.emit("saving", "正在保存文章...", 90)
        article_id = await self._save(request, article, content, images)

        channel.complete("创作完成！", {
            "articleId": article_id,
            "title": article.title,
            "content": content,
            "summary": article.summary,
            "imageKeywords": article.image_keywords,
            "images": [image.model_dump() for image in images],
            "coverImage": images[0].url if images else "",
        })
        logger.info(
            "article_generation_completed",
            article_id=article_id,
            title=article.title[:50],
            images=len(images),
        )

    async def _validate(self, request: GenerateArticleRequest):
        if request.insight is None or not request.keyword:
            raise InvalidRequestError("缺少必要参数")

        ai_config: Optional[AIConfig] = await self.config_provider.get_ai_config()
        if ai_config is None:
            raise ConfigError("请先配置 AI 接口（环境变量或设置页面）")

        missing = ai_config.missing_fields()
        if missing:
            raise ConfigError("AI 配置不完整，请检查 Base URL、API Key 和 Model", detail=",".join(missing))

        preferences: WritingPreferences = await self.config_provider.get_preferences()
        if request.style:
            preferences = preferences.model_copy(update={"style": request.style})

        return ai_config, preferences

    async def _illustrate(
        self,
        request: GenerateArticleRequest,
        client: ModelClient,
        article: GeneratedArticle,
        content: str,
        channel: ProgressChannel,
    ):
        """Plan, synthesize and splice images. Returns (content, successful images)."""
        image_config = await self.config_provider.get_image_gen_config()
        if image_config is None or not image_config.available:
            logger.info("image_generation_skipped", reason="no image credentials")
            return content, []

        channel.emit("generating_prompts", "AI 正在分析文章，生成配图方案...", 55)
        placements = await plan_image_placements(client, article.title, content, request.image_count)

        if not placements:
            channel.emit("generating_images", "未能生成配图方案，跳过配图", IMAGES_DONE)
            return content, []

        channel.emit("generating_prompts", f"已生成 {len(placements)} 张配图方案", 65)
        channel.emit("generating_images", "正在生成配图...", IMAGES_START)

        generator = self.image_generator_factory(image_config, timeout=self.config_provider.image_timeout)
        slots = await self._synthesize_all(generator, placements, channel)
        images = [image for image in slots if image is not None]

        if images:
            content = insert_images_into_content(content, placements, slots)

        channel.emit("generating_images", f"配图生成完成，成功 {len(images)} 张", IMAGES_DONE)
        return content, images

    async def _synthesize_all(
        self,
        generator: ImageGenerator,
        placements: List[ImagePlacement],
        channel: ProgressChannel,
    ) -> List[Optional[GeneratedImage]]:
        """One image at a time; a failed slot is logged and kept as None."""
        total = len(placements)
        slots: List[Optional[GeneratedImage]] = []

        for i, placement in enumerate(placements):
            channel.emit(
                "generating_images",
                f"正在生成配图 ({i + 1}/{total})...",
                IMAGES_START + (i * IMAGES_SPAN) // total,
            )
            try:
                slots.append(await generator.synthesize(placement.prompt))
            except Exception as e:
                logger.error(
                    "image_generation_error",
                    slot=i + 1,
                    total=total,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                slots.append(None)

        return slots

    async def _save(
        self,
        request: GenerateArticleRequest,
        article: GeneratedArticle,
        content: str,
        images: List[GeneratedImage],
    ) -> int:
        search = await self.store.get_search_by_id(request.search_id) if request.search_id else None
        insight_title = request.insight.title
        source = f"{search.keyword} · {insight_title}" if search is not None else insight_title

        return await self.store.create_article(ArticleCreate(
            title=article.title,
            content=content,
            cover_image=images[0].url if images else "",
            images=[image.url for image in images],
            source=source,
            source_insight_id=request.insight_id,
            source_search_id=request.search_id,
        ))


async def stream_generation(
    pipeline: GenerationPipeline,
    request: GenerateArticleRequest,
) -> AsyncIterator[str]:
    """
    Yield SSE frames for one run.

    The pipeline runs as a separate producer task. When the consumer stops
    early (client disconnect closes this generator) the producer is cancelled.
    """
    channel = ProgressChannel()
    task = asyncio.create_task(pipeline.run(request, channel))
    try:
        async for frame in channel.frames():
            yield frame
        await task
    finally:
        if not task.done():
            task.cancel()
            # Reap the cancelled producer
            await asyncio.gather(task, return_exceptions=True)
            logger.info("article_generation_stream_closed", keyword=request.keyword)
