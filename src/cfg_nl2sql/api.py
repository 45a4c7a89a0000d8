"""HTTP surface: thin JSON wrappers around the pipeline."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cfg_nl2sql import __version__
from cfg_nl2sql.config import ConfigError, load_settings
from cfg_nl2sql.evals.harness import summarize
from cfg_nl2sql.grammar.synthesizer import EmptySchemaError, GrammarCollision
from cfg_nl2sql.llm.base import GenerationServiceError
from cfg_nl2sql.pipeline import NL2SQLPipeline, QueryFailed
from cfg_nl2sql.schema.catalog import SchemaFetchError

logger = logging.getLogger(__name__)


class QueryRequest(BaseModel):
    query: str


class PipelineUnavailable(RuntimeError):
    """Raised when the pipeline cannot be built from configuration."""


def get_pipeline() -> NL2SQLPipeline:
    try:
        settings = load_settings()
        settings.validate_llm_requirements()
    except ConfigError as exc:
        logger.error("Failed to load config: %s", exc)
        raise PipelineUnavailable("server configuration error") from exc
    return NL2SQLPipeline.from_settings(settings)


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


app = FastAPI(title="cfg-nl2sql", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(RequestValidationError)
async def invalid_body_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Invalid request body", extra={"path": request.url.path})
    return _error(400, "invalid request body")


@app.exception_handler(PipelineUnavailable)
async def unavailable_handler(request: Request, exc: PipelineUnavailable) -> JSONResponse:
    return _error(500, str(exc))


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}


@app.post("/api/query")
def query(
    body: QueryRequest, pipeline: NL2SQLPipeline = Depends(get_pipeline)
) -> JSONResponse:
    question = body.query.strip()
    if not question:
        logger.warning("Empty query received")
        return _error(400, "query is required")

    logger.info("Query received", extra={"query": question})
    try:
        answer = pipeline.answer(question)
    except SchemaFetchError as exc:
        logger.error("Failed to fetch schema: %s", exc)
        return _error(500, "failed to fetch schema")
    except (GrammarCollision, EmptySchemaError) as exc:
        logger.error("Failed to build grammar: %s", exc)
        return _error(500, str(exc))
    except GenerationServiceError as exc:
        logger.error("Generation failed: %s", exc)
        return _error(500, str(exc))
    except QueryFailed as exc:
        return _error(500, str(exc), sql=exc.sql)

    status_code = 400 if answer.unsupported is not None else 200
    return JSONResponse(status_code=status_code, content=answer.to_dict())


@app.api_route("/api/eval", methods=["GET", "POST"])
def run_eval(pipeline: NL2SQLPipeline = Depends(get_pipeline)) -> JSONResponse:
    logger.info("Running evals")
    try:
        run = pipeline.run_evals()
    except SchemaFetchError as exc:
        logger.error("Failed to fetch schema: %s", exc)
        return _error(500, "failed to fetch schema")
    except (GrammarCollision, EmptySchemaError) as exc:
        logger.error("Failed to build grammar: %s", exc)
        return _error(500, str(exc))

    content: dict[str, object] = {
        "results": [result.to_dict() for result in run.results],
        "summary": summarize(run.results).to_dict(),
        "passed": run.passed,
    }
    if run.error:
        content["error"] = run.error
    return JSONResponse(content=content)
