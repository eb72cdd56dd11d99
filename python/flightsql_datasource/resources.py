"""Auxiliary HTTP resources served next to the query path.

The host forwards resource calls (schema browsing for the query editor) to
this ASGI app. Each handler is a single call into the datasource; a
``RecoverMiddleware`` wraps all of them so an unexpected exception becomes a
bare 500 response instead of taking the plugin process down.
"""

import logging
import traceback
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .models import DataResponse

logger = logging.getLogger("flightsql.datasource")


class RecoverMiddleware(BaseHTTPMiddleware):
    """Turns unhandled handler exceptions into 500 responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                f"Panic in {request.method} {request.url.path}:\n{traceback.format_exc()}"
            )
            return Response(status_code=500)


def _frame_response(response: DataResponse) -> JSONResponse:
    if response.error is not None:
        return JSONResponse(status_code=500, content={"error": response.error})
    return JSONResponse(content=response.to_dict())


def create_router(datasource) -> APIRouter:
    router = APIRouter()

    @router.get("/get-sql-info")
    def get_sql_info() -> JSONResponse:
        return _frame_response(datasource.get_sql_info())

    @router.get("/get-tables")
    def get_tables() -> JSONResponse:
        return _frame_response(datasource.get_tables())

    @router.get("/get-columns")
    def get_columns(table: Optional[str] = None) -> JSONResponse:
        if not table:
            return JSONResponse(status_code=400, content={"error": "missing 'table' parameter"})
        return _frame_response(datasource.get_columns(table))

    return router


def create_resource_app(datasource) -> FastAPI:
    """Build the resource app for one datasource instance."""
    app = FastAPI(title="Flight SQL datasource resources", openapi_url=None, docs_url=None, redoc_url=None)
    app.add_middleware(RecoverMiddleware)
    app.include_router(create_router(datasource))
    return app
