# dr_core/resources/meta.py
from __future__ import annotations

from typing import Any, Optional

from dr_core.cache.metadata import RESOURCE_META_TAG, metadata_cache, user_cache_tag
from dr_core.resources import compiler

API_PREFIX = "/api/v1"


def _user_key(user) -> str:
    if user is None or not getattr(user, "is_authenticated", False):
        return "anonymous"
    return str(user.pk)


class ResourceMetaService:
    """
    Builds the metadata document a client needs to render a generic list or
    form for one resource, and caches it per tenant and per user.
    """

    @staticmethod
    def cache_key(model, user=None) -> str:
        slug = compiler.compile(model).slug
        return f"{RESOURCE_META_TAG}:{slug}:{_user_key(user)}"

    @staticmethod
    def cache_tags(model, user=None) -> list[str]:
        slug = compiler.compile(model).slug
        tags = [slug, RESOURCE_META_TAG]
        if _user_key(user) != "anonymous":
            tags.append(user_cache_tag(user.pk))
        return tags

    @staticmethod
    def compile(model, user=None) -> dict[str, Any]:
        return metadata_cache.remember(
            ResourceMetaService.cache_key(model, user),
            ResourceMetaService.cache_tags(model, user),
            lambda: ResourceMetaService.build(model, user),
        )

    @staticmethod
    def invalidate(model) -> None:
        metadata_cache.invalidate_resource(compiler.compile(model).slug)

    @staticmethod
    def build(model, user=None) -> dict[str, Any]:
        structure = compiler.compile(model)
        data = structure.to_dict()
        return {
            "model": model.__name__,
            "label": structure.label,
            "slug": structure.slug,
            "endpoints": ResourceMetaService.endpoints(structure.slug, bool(structure.media_collections)),
            "fields": [
                {
                    "name": spec.name,
                    "label": spec.label,
                    "type": spec.wire_type,
                    "sortable": spec.sortable,
                    "filterable": spec.filterable,
                    "searchable": spec.searchable,
                    "required": spec.required,
                    "readonly": spec.readonly,
                }
                for spec in structure.fields
            ],
            "filters": data["filters"],
            "custom_filters": [spec.to_dict() for spec in structure.custom_filters.values()],
            "sorts": data["sorts"],
            "allowed_includes": data["allowed_includes"],
            "search": data["search"],
            "pagination": data["pagination"],
            "media_collections": data.get("media_collections", {}),
        }

    @staticmethod
    def endpoints(slug: str, has_media: bool = False, prefix: Optional[str] = None) -> dict[str, str]:
        prefix = prefix or API_PREFIX
        endpoints = {
            "list": f"{prefix}/{slug}",
            "view_entity": f"{prefix}/{slug}/{{entity}}",
            "meta": f"{prefix}/meta/{slug}",
        }
        if has_media:
            endpoints["files"] = f"{prefix}/{slug}/{{entity}}/files/{{collection}}"
            endpoints["view_file"] = f"{prefix}/{slug}/{{entity}}/files/{{collection}}/{{file}}"
        return endpoints
