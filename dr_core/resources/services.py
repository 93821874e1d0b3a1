# dr_core/resources/services.py
from __future__ import annotations

from typing import Any

import structlog
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import NotFound
from rest_framework.request import Request

from dr_core.resources import compiler, predicates
from dr_core.resources.pagination import ResourceCursorPagination
from dr_core.resources.params import parse_query_params
from dr_core.resources.registry import registry
from dr_core.resources.serializers import ResourceRecordSerializer
from dr_core.resources.structure import ResourceStructure
from dr_core.tenancy.context import tenant_context
from dr_core.tenancy.exceptions import NoTenantContext

logger = structlog.get_logger(__name__)


def _as_drf_request(request) -> Request:
    return request if isinstance(request, Request) else Request(request)


def _require_context() -> None:
    # a listing needs either a tenant or an explicit global override
    if not (tenant_context.is_active() or tenant_context.is_global_override()):
        raise NoTenantContext()


class ResourceQueryService:
    """
    Read side of the dynamic resource API.

    Order of checks for ``list``: tenant context -> resource slug -> structure
    -> request parameters. Isolation comes from the model's scoped manager
    and is in place before any request parameter is looked at.
    """

    @staticmethod
    def structure(slug: str) -> ResourceStructure:
        return compiler.compile(registry.resolve(slug))

    @staticmethod
    def list(slug: str, request) -> dict[str, Any]:
        _require_context()
        model = registry.resolve(slug)
        structure = compiler.compile(model)

        drf_request = _as_drf_request(request)
        params = parse_query_params(drf_request.query_params)

        decorated = predicates.decorate(model, structure, params, model.objects.all())

        paginator = ResourceCursorPagination(structure.pagination, decorated.ordering)
        page = paginator.paginate_queryset(decorated.queryset, drf_request)
        serializer = ResourceRecordSerializer(
            page,
            many=True,
            context={"structure": structure, "includes": decorated.includes, "request": drf_request},
        )

        logger.debug(
            "resource.list",
            slug=slug,
            filters=sorted(params.filters),
            sort=list(params.sort),
            per_page=paginator.page_size,
        )
        return paginator.get_envelope(serializer.data)

    @staticmethod
    def retrieve(slug: str, pk, request) -> dict[str, Any]:
        _require_context()
        model = registry.resolve(slug)
        structure = compiler.compile(model)

        drf_request = _as_drf_request(request)
        params = parse_query_params(drf_request.query_params)
        includes = predicates.resolve_includes(structure, params.include)

        queryset = predicates.apply_includes(model, model.objects.all(), includes)
        try:
            instance = queryset.get(pk=pk)
        except (model.DoesNotExist, DjangoValidationError, ValueError, TypeError):
            # malformed ids are reported the same way as missing ones
            raise NotFound(f"No {slug} record with id '{pk}'.")

        serializer = ResourceRecordSerializer(
            instance,
            context={"structure": structure, "includes": includes, "request": drf_request},
        )
        return {"data": serializer.data}
