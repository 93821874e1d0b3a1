# dr_core/api/urls.py
from __future__ import annotations

from django.urls import path

from dr_core.resources.api.views import DynamicResourceViewSet, ResourceMetaView

resource_list = DynamicResourceViewSet.as_view({"get": "list"})
resource_detail = DynamicResourceViewSet.as_view({"get": "retrieve"})

urlpatterns = [
    # meta/ first so it is never taken for a resource slug
    path("meta/<slug:slug>/", ResourceMetaView.as_view(), name="resource-meta"),
    path("<slug:slug>/", resource_list, name="resource-list"),
    path("<slug:slug>/<str:pk>/", resource_detail, name="resource-detail"),
]
