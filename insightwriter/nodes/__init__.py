"""
Pipeline nodes for insightwriter.

This package contains the analysis and article-generation implementations.
"""

from .llm import (
    ModelClient,
    strip_code_fences,
    load_model_json,
    parse_model_json,
    generate_article,
)

from .summarizer import (
    extract_article_summary,
    batch_summarize,
)

from .insights import (
    synthesize_insights,
)

from .images import (
    plan_image_placements,
    ImageGenerator,
)

from .splicer import (
    insert_images_into_content,
    strip_image_markers,
    count_paragraphs,
)

from .progress import (
    ProgressChannel,
    encode_sse,
)

from .pipeline import (
    GenerationPipeline,
    stream_generation,
)

from .analysis import (
    run_insight_analysis,
    load_stored_analysis,
)

from .db_ops import (
    ArticleStore,
)
