"""
Splicing generated images into article HTML.

Insertion points are paragraph end offsets computed on the unmodified HTML.
Splicing happens from the highest offset down, so every insertion leaves the
offsets of the ones still pending untouched.
"""
import html
import re
from typing import List, Optional, Sequence, Tuple

from .schemas import GeneratedImage, ImagePlacement

# Non-recursive paragraph match. `<p` must be followed by whitespace or `>`,
# so <pre> and <param> are not counted as paragraphs.
PARAGRAPH_RE = re.compile(r"<p(?:\s[^>]*)?>[\s\S]*?</p>", re.IGNORECASE)

IMAGE_MARKER_RE = re.compile(r"\[INSERT_IMAGE:[^\]]+\]")

FIGURE_TEMPLATE = """
<figure class="article-image" style="margin: 24px 0; text-align: center;">
  <img src="{src}" alt="{alt}" style="max-width: 100%; height: auto; border-radius: 8px;" />
  <figcaption style="text-align: center; color: #666; font-size: 14px; margin-top: 8px;">{caption}</figcaption>
</figure>"""


def find_paragraphs(content: str) -> List[Tuple[int, int]]:
    """(start, end) offsets of every <p>...</p> span, in document order."""
    return [(m.start(), m.end()) for m in PARAGRAPH_RE.finditer(content)]


def count_paragraphs(content: str) -> int:
    return len(PARAGRAPH_RE.findall(content))


def strip_image_markers(content: str) -> str:
    """Remove legacy [INSERT_IMAGE:...] markers left by older prompts."""
    return IMAGE_MARKER_RE.sub("", content)


def build_figure(url: str, description: str) -> str:
    return FIGURE_TEMPLATE.format(
        src=html.escape(url, quote=True),
        alt=html.escape(description, quote=True),
        caption=html.escape(description, quote=False),
    )


def insert_images_into_content(
    content: str,
    placements: Sequence[ImagePlacement],
    images: Sequence[Optional[GeneratedImage]],
) -> str:
    """
    Insert one <figure> after the target paragraph of each successful image.

    placements[i] pairs with images[i]; None slots are skipped. Positions past
    the last paragraph land after the last paragraph. Figures sharing a
    boundary appear in list order.
    """
    paragraphs = find_paragraphs(content)
    if not paragraphs:
        return content

    insertions: List[Tuple[int, int, str]] = []
    for index, (placement, image) in enumerate(zip(placements, images)):
        if image is None or not image.url:
            continue

        paragraph_index = min(placement.insert_after_paragraph, len(paragraphs)) - 1
        if paragraph_index < 0:
            continue

        offset = paragraphs[paragraph_index][1]
        insertions.append((offset, index, build_figure(image.url, placement.description)))

    if not insertions:
        return content

    # Highest offset first; at a shared offset the later list entry goes in
    # first so the earlier one ends up in front of it.
    insertions.sort(key=lambda item: (item[0], item[1]), reverse=True)

    result = content
    for offset, _, fragment in insertions:
        result = result[:offset] + fragment + result[offset:]
    return result
