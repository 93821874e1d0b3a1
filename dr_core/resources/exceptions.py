# dr_core/resources/exceptions.py
from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured
from rest_framework.exceptions import NotFound, ValidationError


class InvalidStructure(ImproperlyConfigured):
    """
    A resource declaration is internally inconsistent or does not match its model.
    Programmer error; raised at registration/compile time, never per request.
    """


class InvalidRegistration(ImproperlyConfigured):
    """
    Something that does not declare a resource structure was registered.
    """


class UnknownResource(NotFound):
    default_detail = "Unknown resource type."
    default_code = "unknown_resource"
    error_code = "unknown_resource"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(detail=f"Unknown resource type '{slug}'.")


class InvalidFilterRequest(ValidationError):
    default_code = "invalid_filter"
    error_code = "invalid_filter"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__({"detail": message, "filter": field})


class InvalidSortRequest(ValidationError):
    default_code = "invalid_sort"
    error_code = "invalid_sort"

    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        names = ", ".join(self.fields)
        super().__init__({"detail": f"Sorting is not allowed on: {names}.", "sort": self.fields})
