# dr_core/common/tests/test_middleware.py

import pytest
import structlog
from django.http import HttpResponse
from django.test import RequestFactory

from dr_core.common.middleware import TenantContextMiddleware
from dr_core.tenancy.context import EMPTY_STATE, tenant_context

pytestmark = pytest.mark.django_db


def test_context_left_over_from_previous_work_is_cleared(superuser):
    tenant_context.set_global_override(superuser)
    seen = {}

    def view(request):
        seen["state"] = tenant_context.snapshot()
        seen["request_id"] = structlog.contextvars.get_contextvars().get("request_id")
        return HttpResponse("ok")

    request = RequestFactory().get("/")
    TenantContextMiddleware(view)(request)

    assert seen["state"] == EMPTY_STATE
    assert seen["request_id"] == request.request_id


def test_context_is_cleared_after_response(tenant, user):
    def view(request):
        tenant_context.set_tenant(tenant, user)
        return HttpResponse("ok")

    TenantContextMiddleware(view)(RequestFactory().get("/"))

    assert tenant_context.snapshot() == EMPTY_STATE
    assert structlog.contextvars.get_contextvars() == {}


def test_context_is_cleared_after_exception(tenant, user):
    middleware = TenantContextMiddleware(lambda request: HttpResponse("ok"))
    request = RequestFactory().get("/")
    middleware.process_request(request)
    tenant_context.set_tenant(tenant, user)

    middleware.process_exception(request, RuntimeError("boom"))

    assert tenant_context.snapshot() == EMPTY_STATE
