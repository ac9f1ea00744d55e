import re

from insightwriter.nodes.schemas import GeneratedImage, ImagePlacement
from insightwriter.nodes.splicer import (
    count_paragraphs,
    insert_images_into_content,
    strip_image_markers,
)

HTML = "<h2>标题</h2><p>一</p><p class=\"lead\">二</p><pre>code</pre><P>三</P>"


def _placement(pos, desc="图"):
    return ImagePlacement(prompt="p", insert_after_paragraph=pos, description=desc)


def _image(n):
    return GeneratedImage(url=f"https://img.test/{n}.png")


def _paragraph_texts(html):
    return re.findall(r"<p(?:\s[^>]*)?>([\s\S]*?)</p>", html, re.IGNORECASE)


def test_counts_paragraphs_case_insensitive_and_skips_pre():
    assert count_paragraphs(HTML) == 3


def test_no_placements_returns_input():
    assert insert_images_into_content(HTML, [], []) == HTML


def test_all_failed_images_returns_input():
    placements = [_placement(1), _placement(2)]
    assert insert_images_into_content(HTML, placements, [None, None]) == HTML


def test_no_paragraphs_returns_input():
    html = "<div>no paragraphs</div>"
    assert insert_images_into_content(html, [_placement(1)], [_image(1)]) == html


def test_inserts_after_target_paragraph():
    result = insert_images_into_content(HTML, [_placement(2, "第二张")], [_image(1)])

    before, after = result.split("<figure", 1)
    assert before.rstrip().endswith('<p class="lead">二</p>')
    assert after.index("</figure>") < after.index("<pre>")
    assert 'src="https://img.test/1.png"' in result
    assert "<figcaption" in result and "第二张</figcaption>" in result


def test_distinct_boundaries_keep_text_intact_in_any_order():
    placements = [_placement(3, "c"), _placement(1, "a"), _placement(2, "b")]
    images = [_image(3), _image(1), _image(2)]

    result = insert_images_into_content(HTML, placements, images)

    assert result.count("<figure") == 3
    assert count_paragraphs(result) == 3
    assert _paragraph_texts(result) == _paragraph_texts(HTML)
    positions = [result.index(f"https://img.test/{n}.png") for n in (1, 2, 3)]
    assert positions == sorted(positions)


def test_position_beyond_last_paragraph_goes_after_last():
    result = insert_images_into_content(HTML, [_placement(9)], [_image(1)])
    assert result.rstrip().endswith("</figure>")


def test_shared_boundary_keeps_list_order():
    placements = [_placement(1, "first"), _placement(1, "second")]
    result = insert_images_into_content(HTML, placements, [_image(1), _image(2)])

    assert result.index("img.test/1.png") < result.index("img.test/2.png")
    assert result.count("<figure") == 2


def test_skips_none_slots():
    placements = [_placement(1), _placement(2), _placement(3)]
    result = insert_images_into_content(HTML, placements, [_image(1), None, _image(3)])

    assert result.count("<figure") == 2
    assert "img.test/3.png" in result


def test_escapes_attributes():
    placement = _placement(1, 'a "quoted" <b>caption</b>')
    result = insert_images_into_content("<p>x</p>", [placement], [_image(1)])

    assert 'alt="a &quot;quoted&quot; &lt;b&gt;caption&lt;/b&gt;"' in result
    assert "<b>" not in result


def test_strip_image_markers():
    html = "<p>a[INSERT_IMAGE:cat]</p>[INSERT_IMAGE: dog ]<p>b</p>"
    assert strip_image_markers(html) == "<p>a</p><p>b</p>"
