"""
Request middleware: request ids and JSON error bodies.
"""

import json
import uuid
from collections.abc import Callable

from aiohttp import web

from venuesync.exceptions import StorageError
from venuesync.service.errors import APIError, ErrorCode
from venuesync.utils.logging import get_logger

logger = get_logger("venuesync.service.middleware")


def _error_response(code: ErrorCode, message: str, status: int, request_id: str) -> web.Response:
    return web.json_response(
        {"error": {"code": code.value, "message": message, "request_id": request_id}},
        status=status,
        headers={"X-Request-ID": request_id},
    )


@web.middleware
async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """
    Tag each request with an ``X-Request-ID`` and render failures as JSON.

    APIError keeps its own status; storage failures become 502 and anything
    unexpected a 500 whose message does not leak internals.
    """
    request_id = f"req_{uuid.uuid4().hex[:12]}"
    request["request_id"] = request_id

    try:
        response = await handler(request)
        response.headers["X-Request-ID"] = request_id
        return response

    except APIError as e:
        logger.warning(f"API error: {e.code.value} - {e.message} ({request.method} {request.path})")
        return web.json_response(e.to_dict(request_id), status=e.status, headers={"X-Request-ID": request_id})

    except json.JSONDecodeError as e:
        logger.warning(f"JSON decode error on {request.path}: {e}")
        return _error_response(ErrorCode.INVALID_REQUEST, "Invalid JSON in request body", 400, request_id)

    except web.HTTPException:
        # Routing 404/405 responses render themselves
        raise

    except StorageError as e:
        logger.error(f"Storage error on {request.path}: {e.message}")
        return _error_response(ErrorCode.STORAGE_ERROR, e.message, 502, request_id)

    except Exception as e:
        logger.error(f"Unexpected error on {request.method} {request.path}: {e}", exc_info=True)
        return _error_response(ErrorCode.INTERNAL_ERROR, "An internal error occurred", 500, request_id)
