"""
Image planning and synthesis.

plan_image_placements asks the model where images belong in a finished
article; ImageGenerator renders one prompt per call. Spreading images out and
keeping the first one early are prompt hints only. The code enforces just the
paragraph range and the ascending order.
"""
import re
from typing import List, Optional

import httpx
import structlog

from insightwriter.shared.exceptions import ImageSynthesisError
from .llm import ModelClient, parse_model_json
from .prompts import IMAGE_PLAN_PROMPT, IMAGE_PLAN_SYSTEM_PROMPT
from .schemas import (
    GeneratedImage,
    ImageGenConfig,
    ImagePlacement,
    LLMImagePlacementsResponse,
)
from .splicer import count_paragraphs

logger = structlog.get_logger()

# Characters of tag-stripped article text sent to the planner
MAX_PLAN_CHARS = 4000

_TAG_RE = re.compile(r"<[^>]+>")


def clamp_position(value: Optional[int], total_paragraphs: int) -> int:
    """Coerce a model-supplied 1-based position into [1, total_paragraphs]."""
    upper = max(total_paragraphs, 1)
    return min(max(value or 1, 1), upper)


async def plan_image_placements(
    client: ModelClient,
    title: str,
    content: str,
    count: int = 3,
) -> List[ImagePlacement]:
    """
    Plan `count` images for an HTML article.

    Returns placements sorted ascending by insert_after_paragraph (stable for
    ties). Unparseable output yields []; ModelCallError propagates.
    """
    total_paragraphs = count_paragraphs(content)
    plain_content = _TAG_RE.sub(" ", content)[:MAX_PLAN_CHARS]

    prompt = IMAGE_PLAN_PROMPT.format(
        image_count=count,
        title=title,
        plain_content=plain_content,
        total_paragraphs=total_paragraphs,
    )
    messages = [
        {"role": "system", "content": IMAGE_PLAN_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]

    raw = await client.call(messages)
    parsed = parse_model_json(raw, LLMImagePlacementsResponse, fallback=None)
    if parsed is None:
        return []

    placements = [
        ImagePlacement(
            prompt=item.prompt,
            insert_after_paragraph=clamp_position(item.insert_after_paragraph, total_paragraphs),
            description=item.description,
        )
        for item in parsed.images
    ]
    placements.sort(key=lambda p: p.insert_after_paragraph)

    logger.info(
        "image_placements_planned",
        requested=count,
        planned=len(placements),
        total_paragraphs=total_paragraphs,
        positions=[p.insert_after_paragraph for p in placements],
    )
    return placements


class ImageGenerator:
    """
    Client for the configured image-generation endpoint.

    The endpoint receives {"model", "prompt"} with bearer auth and answers
    with either {"images": [{"url"}]} or {"data": [{"url"}]}.
    """

    def __init__(
        self,
        config: ImageGenConfig,
        timeout: float = 120,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.timeout = timeout
        self._http_client = http_client

    async def synthesize(self, prompt: str) -> GeneratedImage:
        """
        Generate one image.

        Raises:
            ImageSynthesisError: non-2xx response, transport failure, or no
                image URL in the response
        """
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        request_body = {"model": self.config.model, "prompt": prompt}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.config.base_url, headers=headers, json=request_body, timeout=self.timeout,
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.config.base_url, headers=headers, json=request_body)
        except httpx.HTTPError as e:
            raise ImageSynthesisError(f"图片生成请求失败: {e}") from e

        if response.is_error:
            raise ImageSynthesisError(
                f"图片生成 API 调用失败: {response.status_code}",
                detail=response.text[:500],
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ImageSynthesisError("图片生成 API 返回了非 JSON 内容") from e

        url = _first_image_url(data)
        if not url:
            raise ImageSynthesisError("图片生成 API 未返回图片地址")

        seed = data.get("seed") if isinstance(data, dict) else None
        logger.info("image_generated", model=self.config.model, prompt=prompt[:50])
        return GeneratedImage(url=url, seed=seed if isinstance(seed, int) else None)


def _first_image_url(data) -> str:
    if not isinstance(data, dict):
        return ""
    for key in ("images", "data"):
        items = data.get(key)
        if isinstance(items, list) and items and isinstance(items[0], dict):
            url = items[0].get("url")
            if url:
                return str(url)
    return ""
