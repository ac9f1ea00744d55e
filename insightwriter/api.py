"""
HTTP surface: the generation stream (SSE) and the insight analysis endpoints.

Collaborators live on app.state so tests can swap them:
    app = create_app(store=fake_store, config_provider=ConfigProvider(...))
"""
from typing import Any, Callable, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from insightwriter.nodes.analysis import load_stored_analysis, run_insight_analysis
from insightwriter.nodes.db_ops import ArticleStore
from insightwriter.nodes.llm import ModelClient
from insightwriter.nodes.pipeline import GenerationPipeline, stream_generation
from insightwriter.nodes.schemas import GenerateArticleRequest, InsightAnalysisRequest
from insightwriter.shared.config import ConfigProvider
from insightwriter.shared.exceptions import ConfigError, InvalidRequestError, NotFoundError

logger = structlog.get_logger()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

router = APIRouter(prefix="/api", tags=["insightwriter"])


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def get_store(request: Request) -> Any:
    return request.app.state.store


def get_config_provider(request: Request) -> ConfigProvider:
    return request.app.state.config_provider


def get_pipeline(request: Request) -> GenerationPipeline:
    return request.app.state.pipeline


def get_model_client_factory(request: Request) -> Callable[..., ModelClient]:
    return request.app.state.model_client_factory


@router.post("/articles/generate")
async def generate_article_stream(
    body: GenerateArticleRequest,
    pipeline: GenerationPipeline = Depends(get_pipeline),
):
    """Stream progress frames until `completed` or `error`."""
    logger.info(
        "article_generation_requested",
        insight_id=body.insight_id,
        search_id=body.search_id,
        fetch_images=body.fetch_images,
    )
    return StreamingResponse(
        stream_generation(pipeline, body),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/insights")
async def create_insights(
    body: InsightAnalysisRequest,
    store: Any = Depends(get_store),
    config_provider: ConfigProvider = Depends(get_config_provider),
    model_client_factory: Callable[..., ModelClient] = Depends(get_model_client_factory),
):
    try:
        result = await run_insight_analysis(
            store,
            config_provider,
            body.search_id,
            body.keyword,
            force_regenerate=body.force_regenerate,
            model_client_factory=model_client_factory,
        )
    except (InvalidRequestError, ConfigError) as e:
        return _error(str(e), 400)
    except NotFoundError as e:
        return _error(str(e), 404)
    except Exception as e:
        logger.error("insight_analysis_failed", search_id=body.search_id, error=str(e))
        return _error(str(e) or "生成洞察失败", 500)

    return {"success": True, "data": result.model_dump(by_alias=True)}


@router.get("/insights")
async def read_insights(
    search_id: Optional[int] = Query(default=None, alias="searchId"),
    store: Any = Depends(get_store),
):
    if not search_id:
        return _error("缺少 searchId 参数", 400)

    try:
        search = await store.get_search_by_id(search_id)
        if search is None:
            return _error("搜索记录不存在", 404)
        stored = await load_stored_analysis(store, search_id)
        summaries = await store.get_article_summaries(search_id) if stored is None else stored.summaries
    except Exception as e:
        logger.error("insight_read_failed", search_id=search_id, error=str(e))
        return _error("获取洞察失败", 500)

    return {
        "success": True,
        "data": {
            "summaries": [s.model_dump(by_alias=True) for s in summaries],
            "insights": [i.model_dump(by_alias=True) for i in (stored.insights if stored else [])],
        },
    }


def create_app(
    store: Optional[Any] = None,
    config_provider: Optional[ConfigProvider] = None,
    pipeline: Optional[GenerationPipeline] = None,
    model_client_factory: Callable[..., ModelClient] = ModelClient,
) -> FastAPI:
    """Build the application. Defaults wire the SQLAlchemy store and its settings."""
    store = store if store is not None else ArticleStore()
    config_provider = config_provider or ConfigProvider(get_setting=store.get_setting)
    pipeline = pipeline or GenerationPipeline(store, config_provider, model_client_factory=model_client_factory)

    app = FastAPI(title="insightwriter")
    app.state.store = store
    app.state.config_provider = config_provider
    app.state.pipeline = pipeline
    app.state.model_client_factory = model_client_factory
    app.include_router(router)
    return app
