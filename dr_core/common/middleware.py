from __future__ import annotations

import structlog
from django.utils.deprecation import MiddlewareMixin

from dr_core.common.api.exceptions import ensure_request_id
from dr_core.tenancy.context import tenant_context


class TenantContextMiddleware(MiddlewareMixin):
    """
    Guarantees every request starts and ends with an empty tenant context.

    The context itself is populated later, by the API layer, once DRF has
    authenticated the caller (see ``dr_core.tenancy.resolution``).

    Also binds the request id to structlog's contextvars so every log line
    emitted while serving the request carries it.
    """

    def process_request(self, request):
        tenant_context.clear()
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=ensure_request_id(request))
        return None

    def process_response(self, request, response):
        self._reset()
        return response

    def process_exception(self, request, exception):
        self._reset()
        return None

    def _reset(self) -> None:
        tenant_context.clear()
        structlog.contextvars.clear_contextvars()
