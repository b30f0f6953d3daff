"""
HTTP entrypoint for task -> member matching.

    OPTIONS *            CORS preflight, empty body
    POST *               {"task": str, "matchCount"?: int} -> ranked members
    GET  /health
    GET  /metrics        Prometheus

Every JSON response is an envelope with `success` and `timestamp`, including
400/405/500 errors.
"""
import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest, make_asgi_app
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from src import config
from src.matching.encoder import EncoderService
from src.matching.errors import MatchingError, ValidationError
from src.matching.search import search_by_task
from src.matching.store import MemberStore

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
}

# Registered last so /health and /metrics win; any other path answers POST.
MATCH_PATHS = ('/match', '/{path:path}')


class MatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task: StrictStr
    match_count: Annotated[StrictInt, Field(ge=1, le=config.MAX_MATCH_COUNT)] | None = Field(
        default=None, alias='matchCount'
    )

    @field_validator('match_count', mode='before')
    @classmethod
    def _integral_float_as_int(cls, value):
        # JSON has one number type: 5.0 is 5, 2.5 is still rejected.
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    @field_validator('task')
    @classmethod
    def _task_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError('Task description cannot be empty')
        return value


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def envelope(status_code: int, **body) -> JSONResponse:
    body['timestamp'] = _timestamp()
    return JSONResponse(status_code=status_code, content=body, headers=CORS_HEADERS)


def error_response(status_code: int, message: str) -> JSONResponse:
    return envelope(status_code, success=False, error=message)


def describe_validation_error(exc: RequestValidationError) -> str:
    """First request error as a caller-facing sentence."""
    for error in exc.errors():
        loc = tuple(error.get('loc', ()))
        field = loc[1] if len(loc) > 1 else None
        if error.get('type') == 'json_invalid':
            return 'Invalid JSON in request body'
        if field == 'task':
            if error.get('type') == 'value_error':
                return 'Task description cannot be empty'
            return 'Missing or invalid "task" field in request body'
        if field == 'matchCount':
            return f'matchCount must be an integer between 1 and {config.MAX_MATCH_COUNT}'
        return 'Request body must be a JSON object'
    return 'Invalid request'


def create_app(store: MemberStore | None = None, encoder: EncoderService | None = None) -> FastAPI:
    """
    Build the app. With no store injected one is built from STORE_URL /
    STORE_SERVICE_KEY, so missing configuration fails here, before serving.
    """
    if store is None:
        store = MemberStore.from_config()
    if encoder is None:
        encoder = EncoderService()

    app = FastAPI(title='Member Matcher', version='0.1.0')
    app.mount('/metrics', make_asgi_app())
    app.state.store = store
    app.state.encoder = encoder

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(400, describe_validation_error(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return error_response(405, 'Method not allowed. Use POST.')
        return error_response(exc.status_code, str(exc.detail))

    @app.middleware('http')
    async def preflight(request: Request, call_next):
        # Answered before routing so any path gets it, whatever the app state.
        if request.method == 'OPTIONS':
            return Response(status_code=200, headers=CORS_HEADERS)
        return await call_next(request)

    @app.get('/health')
    def health():
        return {
            'status': 'ok',
            'service': 'member-matcher',
            'model_loaded': app.state.encoder.is_loaded,
        }

    @app.get('/metrics', include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    def match(req: MatchRequest):
        """
        Rank members against a task description.

        - 200: ranked results (possibly empty)
        - 400: invalid body
        - 500: model, storage or procedure failure
        """
        match_count = req.match_count if req.match_count is not None else config.DEFAULT_MATCH_COUNT
        logger.info(f'Processing matching request for task: "{req.task}" with matchCount: {match_count}')

        try:
            results = search_by_task(app.state.store, app.state.encoder, req.task, match_count)
        except ValidationError as e:
            return error_response(400, str(e))
        except MatchingError as e:
            logger.error(f"Matching failed for task {req.task!r}: {e}")
            return error_response(500, str(e))
        except Exception:
            logger.exception(f"Unexpected error matching task {req.task!r}")
            return error_response(500, 'An unexpected error occurred')

        return envelope(
            200,
            success=True,
            task=req.task,
            matchCount=match_count,
            results=[r.model_dump() for r in results],
        )

    for path in MATCH_PATHS:
        app.add_api_route(path, match, methods=['POST'])

    return app
