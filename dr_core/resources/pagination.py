# dr_core/resources/pagination.py
from __future__ import annotations

from typing import Any, Optional

from django.conf import settings
from rest_framework.pagination import CursorPagination
from rest_framework.utils.urls import remove_query_param

from dr_core.resources.structure import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PaginationPolicy


def global_max_page_size() -> int:
    return int(getattr(settings, "RESOURCES_PAGINATION_MAX_SIZE", MAX_PAGE_SIZE))


def global_default_page_size() -> int:
    return int(getattr(settings, "RESOURCES_PAGINATION_DEFAULT_SIZE", DEFAULT_PAGE_SIZE))


def effective_max_page_size(policy: PaginationPolicy) -> int:
    """
    A resource may tighten the global ceiling, never loosen it.
    """
    if policy.declared:
        return min(policy.max_size, global_max_page_size())
    return global_max_page_size()


def negotiate_page_size(policy: PaginationPolicy, requested: Any) -> int:
    """
    requested > 0  -> min(requested, effective max)
    otherwise      -> the resource default (global default when undeclared)
    """
    ceiling = effective_max_page_size(policy)
    try:
        size = int(str(requested).strip()) if requested is not None else 0
    except (TypeError, ValueError):
        size = 0

    if size > 0:
        return min(size, ceiling)

    default = policy.default_size if policy.declared else global_default_page_size()
    return min(default, ceiling)


class ResourceCursorPagination(CursorPagination):
    """
    Cursor pagination for dynamic resources.

    Ordering and page size are negotiated per resource instead of being class
    attributes; cursors stay DRF's opaque base64 tokens.
    """

    def __init__(self, policy: PaginationPolicy, ordering: tuple[str, ...]):
        self.cursor_query_param = getattr(settings, "RESOURCES_CURSOR_PARAM", "page[cursor]")
        self.page_size_query_param = getattr(settings, "RESOURCES_SIZE_PARAM", "page[per_page]")
        self.policy = policy
        self._ordering = tuple(ordering) or ("pk",)
        self.max_page_size = effective_max_page_size(policy)
        self.page_size = negotiate_page_size(policy, None)

    def get_page_size(self, request) -> int:
        return negotiate_page_size(self.policy, request.query_params.get(self.page_size_query_param))

    def get_ordering(self, request, queryset, view) -> tuple[str, ...]:
        return self._ordering

    def get_first_link(self) -> Optional[str]:
        return remove_query_param(self.base_url, self.cursor_query_param)

    def get_envelope(self, data: list) -> dict[str, Any]:
        return {
            "data": data,
            "links": {
                "first": self.get_first_link(),
                "prev": self.get_previous_link(),
                "next": self.get_next_link(),
            },
            "meta": {
                "page": {
                    "per_page": self.page_size,
                    "has_more": bool(self.has_next),
                },
            },
        }
