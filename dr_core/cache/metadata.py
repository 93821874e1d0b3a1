# dr_core/cache/metadata.py
from __future__ import annotations

from typing import Any, Callable, Iterable, Optional, TypeVar

import structlog
from django.conf import settings

from dr_core.cache.backends import MISSING, TagAwareBackend, build_backend
from dr_core.common.events import publish
from dr_core.tenancy.context import tenant_cache_tag, tenant_context

logger = structlog.get_logger(__name__)

T = TypeVar("T")

BASE_TAG = "dr-metadata"
RESOURCE_META_TAG = "resource-meta"
DEFAULT_TTL = 600
DEFAULT_PREFIX = "dr:metadata"


def user_cache_tag(user_id) -> str:
    return f"user:{user_id}"


class MetadataCache:
    """
    Tenant-aware cache for computed metadata.

    Keys are namespaced by the active tenant (``global`` when there is none)
    and every entry is tagged with the base tag plus the tenant tag, so a
    whole tenant or a single resource type can be dropped at once.

    The cache fails open: when the backend is unreachable the value is simply
    computed. Errors raised by the compute callable itself propagate.
    """

    def __init__(self, backend: Optional[TagAwareBackend] = None):
        self._backend = backend
        self.hits = 0
        self.misses = 0

    # -----------------------------
    # configuration
    # -----------------------------
    @property
    def enabled(self) -> bool:
        return bool(getattr(settings, "METADATA_CACHE_ENABLED", True))

    @property
    def ttl(self) -> int:
        return int(getattr(settings, "METADATA_CACHE_TTL", DEFAULT_TTL))

    @property
    def prefix(self) -> str:
        return getattr(settings, "METADATA_CACHE_PREFIX", DEFAULT_PREFIX)

    @property
    def monitoring(self) -> bool:
        return bool(getattr(settings, "METADATA_CACHE_MONITORING", False))

    @property
    def backend(self) -> TagAwareBackend:
        if self._backend is None:
            self._backend = build_backend(prefix=self.prefix)
        return self._backend

    def use_backend(self, backend: Optional[TagAwareBackend]) -> None:
        """Swap the backend (``None`` rebuilds it from settings on next use)."""
        self._backend = backend

    # -----------------------------
    # keys & tags
    # -----------------------------
    def scoped_key(self, key: str) -> str:
        scope = tenant_context.tenant_id() if tenant_context.is_active() else None
        return f"{self.prefix}:{scope or 'global'}:{key}"

    def effective_tags(self, tags: Iterable[str] = ()) -> list[str]:
        base = [BASE_TAG]
        if tenant_context.is_active():
            base.append(tenant_context.cache_tag())
        return list(dict.fromkeys([*base, *tags]))

    # -----------------------------
    # read-through
    # -----------------------------
    def remember(self, key: str, tags: Iterable[str], compute: Callable[[], T], ttl: Optional[int] = None) -> T:
        if not self.enabled:
            return compute()

        full_key = self.scoped_key(key)
        all_tags = self.effective_tags(tags)

        try:
            value = self.backend.get(full_key, all_tags)
        except Exception as exc:
            logger.warning("metadata_cache.backend_error", operation="get", key=full_key, error=str(exc))
            return compute()

        if value is not MISSING:
            self.hits += 1
            return value

        self.misses += 1
        value = compute()
        self._record_miss(full_key)

        try:
            self.backend.set(full_key, value, all_tags, ttl or self.ttl)
        except Exception as exc:
            logger.warning("metadata_cache.backend_error", operation="set", key=full_key, error=str(exc))
        return value

    def _record_miss(self, key: str) -> None:
        if self.monitoring:
            publish("metadata_cache.miss", {"key": key, "type": "metadata"})

    # -----------------------------
    # invalidation
    # -----------------------------
    def invalidate_by_tags(self, tags: Iterable[str]) -> None:
        tags = list(dict.fromkeys(tags))
        if not tags:
            return
        try:
            self.backend.flush_tags(tags)
        except Exception as exc:
            logger.warning("metadata_cache.backend_error", operation="flush", tags=tags, error=str(exc))
            return
        logger.info("metadata_cache.invalidated", tags=tags)
        publish("metadata_cache.invalidated", {"tags": tags})

    def invalidate_resource(self, slug: str) -> None:
        self.invalidate_by_tags([slug, RESOURCE_META_TAG])

    def invalidate_tenant(self, tenant_id) -> None:
        self.invalidate_by_tags([tenant_cache_tag(tenant_id)])

    def invalidate_user(self, user_id) -> None:
        self.invalidate_by_tags([user_cache_tag(user_id)])

    def invalidate_all(self) -> None:
        self.invalidate_by_tags([BASE_TAG])

    # -----------------------------
    # warming & status
    # -----------------------------
    def warm_resource(self, model, user=None) -> dict[str, Any]:
        from dr_core.resources.meta import ResourceMetaService

        return ResourceMetaService.compile(model, user=user)

    def warm_all(self) -> list[str]:
        from dr_core.resources.registry import registry

        warmed = []
        for slug, model in registry.all().items():
            self.warm_resource(model)
            warmed.append(slug)
        return warmed

    def stats(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "enabled": self.enabled,
            "ttl": self.ttl,
            "prefix": self.prefix,
            "hits": self.hits,
            "misses": self.misses,
        }
        try:
            data.update(self.backend.stats())
        except Exception as exc:
            logger.warning("metadata_cache.backend_error", operation="stats", error=str(exc))
            data["driver"] = getattr(self.backend, "name", "unknown")
            data["supports_tags"] = getattr(self.backend, "supports_tags", False)
        return data


metadata_cache = MetadataCache()
