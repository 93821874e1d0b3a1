# dr_core/cache/backends.py
"""
Storage for the metadata cache.

Both backends implement the same small interface; ``MetadataCache`` never
needs to know which one is configured.

- ``RedisTagBackend``: redis-py. Every tag is a redis set of the keys that
  carry it, so flushing a tag deletes exactly those entries. A tag set
  expires with its longest lived entry.
- ``VersionedCacheBackend``: any Django cache alias. Tags cannot be
  enumerated there, so every tag has a version counter folded into the
  physical key; flushing a tag bumps its counter and old entries are simply
  never read again (they expire through their TTL).
"""
from __future__ import annotations

import hashlib
import pickle
from typing import Any, Iterable, Optional

import redis
from django.conf import settings
from django.core.cache import caches

MISSING = object()


class TagAwareBackend:
    supports_tags = False
    name = "base"

    def get(self, key: str, tags: Iterable[str]) -> Any:
        """Return the stored value, or ``MISSING``."""
        raise NotImplementedError

    def set(self, key: str, value: Any, tags: Iterable[str], ttl: int) -> None:
        raise NotImplementedError

    def flush_tags(self, tags: Iterable[str]) -> None:
        raise NotImplementedError

    def stats(self) -> dict[str, Any]:
        return {"driver": self.name, "supports_tags": self.supports_tags}

    @classmethod
    def from_settings(cls, prefix: str) -> "TagAwareBackend":
        raise NotImplementedError


class RedisTagBackend(TagAwareBackend):
    supports_tags = True
    name = "redis"

    def __init__(self, client: redis.Redis, prefix: str = "dr:metadata"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_settings(cls, prefix: str) -> "RedisTagBackend":
        url = getattr(settings, "METADATA_CACHE_REDIS_URL", None) or "redis://localhost:6379/0"
        client = redis.Redis.from_url(
            url,
            decode_responses=False,
            socket_timeout=float(getattr(settings, "METADATA_CACHE_REDIS_TIMEOUT", 1.0)),
        )
        return cls(client, prefix=prefix)

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}:tag:{tag}"

    @property
    def _tag_index(self) -> str:
        return f"{self.prefix}:tags"

    def get(self, key: str, tags: Iterable[str]) -> Any:
        raw = self.client.get(key)
        if raw is None:
            return MISSING
        return pickle.loads(raw)

    def set(self, key: str, value: Any, tags: Iterable[str], ttl: int) -> None:
        tags = list(dict.fromkeys(tags))
        lookup = self.client.pipeline()
        for tag in tags:
            lookup.ttl(self._tag_key(tag))
        # -1 no expiry, -2 missing
        remaining = lookup.execute() if tags else []

        pipe = self.client.pipeline()
        pipe.setex(key, ttl, pickle.dumps(value))
        for tag, current in zip(tags, remaining):
            tag_key = self._tag_key(tag)
            pipe.sadd(tag_key, key)
            pipe.sadd(self._tag_index, tag)
            # a tag set lives as long as its longest lived member
            if current < ttl:
                pipe.expire(tag_key, ttl)
        pipe.execute()

    def flush_tags(self, tags: Iterable[str]) -> None:
        deleted: set[bytes] = set()
        for tag in tags:
            tag_key = self._tag_key(tag)
            members = self.client.smembers(tag_key)
            pipe = self.client.pipeline()
            if members:
                pipe.delete(*members)
            pipe.delete(tag_key)
            pipe.srem(self._tag_index, tag)
            pipe.execute()
            deleted.update(members)

        if not deleted:
            return
        remaining_tags = self.client.smembers(self._tag_index)
        if remaining_tags:
            pipe = self.client.pipeline()
            for tag in remaining_tags:
                pipe.srem(self._tag_key(self._decode(tag)), *deleted)
            pipe.execute()

    def prune(self) -> int:
        """Forget tags whose set expired. Returns the number of tags dropped."""
        stale = [tag for tag in self.client.smembers(self._tag_index)
                 if not self.client.exists(self._tag_key(self._decode(tag)))]
        if stale:
            self.client.srem(self._tag_index, *stale)
        return len(stale)

    @staticmethod
    def _decode(tag) -> str:
        return tag.decode("utf-8") if isinstance(tag, bytes) else tag

    def stats(self) -> dict[str, Any]:
        data = super().stats()
        self.prune()
        data["tags"] = int(self.client.scard(self._tag_index))
        return data


class VersionedCacheBackend(TagAwareBackend):
    supports_tags = False
    name = "versioned"

    def __init__(self, alias: str = "default", prefix: str = "dr:metadata"):
        self.alias = alias
        self.prefix = prefix

    @classmethod
    def from_settings(cls, prefix: str) -> "VersionedCacheBackend":
        return cls(alias=getattr(settings, "METADATA_CACHE_ALIAS", "default"), prefix=prefix)

    @property
    def cache(self):
        return caches[self.alias]

    def _version_key(self, tag: str) -> str:
        return f"{self.prefix}:version:{tag}"

    def _versions(self, tags: Iterable[str]) -> list[str]:
        tags = sorted(set(tags))
        keys = [self._version_key(tag) for tag in tags]
        stored = self.cache.get_many(keys)
        return [f"{tag}={stored.get(k, 1)}" for tag, k in zip(tags, keys)]

    def _physical_key(self, key: str, tags: Iterable[str]) -> str:
        digest = hashlib.md5("|".join(self._versions(tags)).encode("utf-8")).hexdigest()
        return f"{key}:v:{digest}"

    def get(self, key: str, tags: Iterable[str]) -> Any:
        return self.cache.get(self._physical_key(key, tags), MISSING)

    def set(self, key: str, value: Any, tags: Iterable[str], ttl: int) -> None:
        self.cache.set(self._physical_key(key, tags), value, timeout=ttl)

    def flush_tags(self, tags: Iterable[str]) -> None:
        for tag in set(tags):
            version_key = self._version_key(tag)
            # absent counter means version 1
            if not self.cache.add(version_key, 2, timeout=None):
                try:
                    self.cache.incr(version_key)
                except ValueError:
                    self.cache.set(version_key, 2, timeout=None)

    def stats(self) -> dict[str, Any]:
        data = super().stats()
        data["alias"] = self.alias
        data["django_backend"] = settings.CACHES.get(self.alias, {}).get("BACKEND")
        return data


def build_backend(path: Optional[str] = None, prefix: str = "dr:metadata") -> TagAwareBackend:
    from django.utils.module_loading import import_string

    path = path or getattr(settings, "METADATA_CACHE_BACKEND", "dr_core.cache.backends.VersionedCacheBackend")
    backend_class = import_string(path)
    return backend_class.from_settings(prefix)
