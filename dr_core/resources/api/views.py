# dr_core/resources/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from dr_core.resources.meta import ResourceMetaService
from dr_core.resources.registry import registry
from dr_core.resources.services import ResourceQueryService
from dr_core.tenancy.resolution import TenantContextMixin

LIST_PARAMETERS = [
    OpenApiParameter("filter[<field>]", OpenApiTypes.STR, description="Filter on an allowed field."),
    OpenApiParameter("sort", OpenApiTypes.STR, description="Comma separated; prefix with '-' for descending."),
    OpenApiParameter("search", OpenApiTypes.STR),
    OpenApiParameter("include", OpenApiTypes.STR, description="Comma separated relations."),
    OpenApiParameter("page[per_page]", OpenApiTypes.INT),
    OpenApiParameter("page[cursor]", OpenApiTypes.STR),
]


@extend_schema_view(
    list=extend_schema(
        tags=["Resources"],
        operation_id="v1_resources_list",
        parameters=LIST_PARAMETERS,
        responses={200: OpenApiTypes.OBJECT},
    ),
    retrieve=extend_schema(
        tags=["Resources"],
        operation_id="v1_resources_retrieve",
        responses={200: OpenApiTypes.OBJECT},
    ),
)
class DynamicResourceViewSet(TenantContextMixin, viewsets.ViewSet):
    """
    One listing/detail endpoint for every registered resource.
    Routing is centralized in dr_core/api/urls.py.
    """

    permission_classes = [IsAuthenticated]

    def list(self, request, slug=None):
        return Response(ResourceQueryService.list(slug, request), status=status.HTTP_200_OK)

    def retrieve(self, request, slug=None, pk=None):
        return Response(ResourceQueryService.retrieve(slug, pk, request), status=status.HTTP_200_OK)


class ResourceMetaView(TenantContextMixin, APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Resources"], operation_id="v1_resources_meta", responses={200: OpenApiTypes.OBJECT})
    def get(self, request, slug=None):
        model = registry.resolve(slug)
        return Response({"data": ResourceMetaService.compile(model, user=request.user)}, status=status.HTTP_200_OK)
