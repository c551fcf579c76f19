"""
Fixture Routes - catch-all dispatch of API requests to the FixtureStore.

BLACK BOX INTERFACE:
- ANY /{path} - Serve (lookup) or mutate (apply_mutation) the matching fixture

Must be included after the control router; FastAPI matches routes in
registration order and this one matches everything.

DEPENDENCIES: FixtureStore
"""

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from gridmock.errors import (
    FixtureExecutionError,
    MalformedRequestError,
    MockServerError,
    RouteNotFoundError,
)
from gridmock.fixtures.models import FixtureResponse
from gridmock.fixtures.store import FixtureStore

logger = logging.getLogger(__name__)

DISPATCH_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


async def read_json_body(request: Request) -> Any:
    """Decode the request body; empty bodies read as None."""
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise MalformedRequestError(
            f"Request body is not valid JSON: {e}", path=request.url.path
        ) from e


def to_http_response(result: FixtureResponse, head: bool = False) -> Response:
    """Render a FixtureResponse; JSON unless the fixture says otherwise."""
    if head:
        return Response(
            status_code=result.status,
            headers=result.headers or None,
            media_type=result.content_type,
        )
    if result.is_json:
        return JSONResponse(
            content=result.body,
            status_code=result.status,
            headers=result.headers or None,
        )
    content = result.body
    if content is not None and not isinstance(content, (str, bytes)):
        content = str(content)
    return Response(
        content=content,
        status_code=result.status,
        headers=result.headers or None,
        media_type=result.content_type,
    )


def create_fixture_router(store: FixtureStore) -> APIRouter:
    """
    Create the catch-all fixture router.

    Args:
        store: Fixture store to serve from

    Returns:
        Configured APIRouter
    """
    router = APIRouter(tags=["fixtures"])

    @router.api_route(
        "/{path:path}", methods=DISPATCH_METHODS, include_in_schema=False
    )
    async def dispatch(request: Request, path: str) -> Response:
        head = request.method == "HEAD"
        # HEAD is answered by the GET fixture, without a body
        method = "GET" if head else request.method
        url_path = request.url.path

        latency = store.latency_for(method, url_path)
        if latency:
            await asyncio.sleep(latency / 1000)

        resolved = store.resolve(method, url_path)
        if resolved is None:
            raise RouteNotFoundError(request.method, url_path)
        fixture, _ = resolved

        body = await read_json_body(request) if fixture.stateful else None
        params = dict(request.query_params)
        headers = dict(request.headers)

        try:
            if fixture.stateful:
                result = store.apply_mutation(method, url_path, body, params, headers)
            else:
                result = store.lookup(method, url_path, params, headers)
            if result is None:
                raise RouteNotFoundError(request.method, url_path)
            return to_http_response(result, head=head)
        except MockServerError:
            raise
        except Exception as e:
            logger.error(f"Fixture '{fixture.name}' failed: {e}", exc_info=True)
            raise FixtureExecutionError(fixture.name, e) from e

    return router
