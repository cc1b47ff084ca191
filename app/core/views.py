"""
Core views providing infrastructure endpoints and response helpers.

This module contains views that are not part of the chat domain but are
essential for application infrastructure, such as health checks, plus the
shared translation from a failed ServiceResult to an HTTP response.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response

from core.exceptions import STATUS_BY_ERROR_CODE

if TYPE_CHECKING:
    from core.services import ServiceResult

logger = logging.getLogger(__name__)


def error_response(result: ServiceResult) -> Response:
    """
    Build the error response for a failed service result.

    The body always carries ``error`` and ``error_code`` so clients can
    branch on the failure kind; the status comes from the exception
    hierarchy in core.exceptions (unknown codes fall back to 400).

    Example:
        result = MessageService.edit(user=request.user, message_id=pk, content=c)
        if not result.success:
            return error_response(result)
    """
    body = {"error": result.error, "error_code": result.error_code}
    if result.errors:
        body["errors"] = result.errors
    http_status = STATUS_BY_ERROR_CODE.get(
        result.error_code or "", status.HTTP_400_BAD_REQUEST
    )
    return Response(body, status=http_status)


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"

    HTTP Status Codes:
        200: Database reachable (cache failures only degrade)
        503: Database unreachable
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # Cache is optional; a failure here degrades but does not fail the check
    try:
        cache.set("health_check", "ok", timeout=1)
        cache_ok = cache.get("health_check") == "ok"
    except Exception:  # noqa: BLE001 - any backend error means "disconnected"
        logger.warning("Health check: cache unreachable", exc_info=True)
        cache_ok = False
    health_status["cache"] = "connected" if cache_ok else "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
