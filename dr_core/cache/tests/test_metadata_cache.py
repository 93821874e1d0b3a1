# dr_core/cache/tests/test_metadata_cache.py

import pytest
from django.test import override_settings

from dr_core.cache.backends import MISSING, TagAwareBackend
from dr_core.cache.metadata import BASE_TAG, metadata_cache
from dr_core.common.events import subscribe, unsubscribe
from dr_core.tenancy.context import tenant_context

pytestmark = pytest.mark.django_db


class Counter:
    def __init__(self, value="computed"):
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value


class BrokenBackend(TagAwareBackend):
    name = "broken"

    def get(self, key, tags):
        raise ConnectionError("backend down")

    def set(self, key, value, tags, ttl):
        raise ConnectionError("backend down")

    def flush_tags(self, tags):
        raise ConnectionError("backend down")

    def stats(self):
        raise ConnectionError("backend down")


class MemoryBackend(TagAwareBackend):
    """Records what MetadataCache asks of its backend."""

    supports_tags = True
    name = "memory"

    def __init__(self):
        self.entries = {}
        self.flushed = []

    def get(self, key, tags):
        entry = self.entries.get(key)
        return MISSING if entry is None else entry[0]

    def set(self, key, value, tags, ttl):
        self.entries[key] = (value, list(tags), ttl)

    def flush_tags(self, tags):
        self.flushed.append(list(tags))
        for key, (_, entry_tags, _) in list(self.entries.items()):
            if set(entry_tags) & set(tags):
                del self.entries[key]


def test_remember_computes_once():
    compute = Counter()

    assert metadata_cache.remember("k", ["widgets"], compute) == "computed"
    assert metadata_cache.remember("k", ["widgets"], compute) == "computed"
    assert compute.calls == 1
    assert (metadata_cache.hits, metadata_cache.misses) == (1, 1)


def test_keys_and_tags_are_tenant_scoped(tenant, user):
    backend = MemoryBackend()
    metadata_cache.use_backend(backend)

    metadata_cache.remember("k", ["widgets"], Counter())
    with tenant_context.using_tenant(tenant, user):
        metadata_cache.remember("k", ["widgets"], Counter())

    global_key = f"{metadata_cache.prefix}:global:k"
    tenant_key = f"{metadata_cache.prefix}:{tenant.id}:k"
    assert set(backend.entries) == {global_key, tenant_key}
    assert backend.entries[global_key][1] == [BASE_TAG, "widgets"]
    assert backend.entries[tenant_key][1] == [BASE_TAG, f"tenant:{tenant.id}", "widgets"]
    assert backend.entries[tenant_key][2] == metadata_cache.ttl


def test_tenants_do_not_share_entries(tenant, other_tenant, user, other_user):
    with tenant_context.using_tenant(tenant, user):
        metadata_cache.remember("k", [], Counter("acme"))
    with tenant_context.using_tenant(other_tenant, other_user):
        value = metadata_cache.remember("k", [], Counter("globex"))

    assert value == "globex"


def test_tag_flush_only_drops_tagged_entries():
    widgets = Counter()
    categories = Counter()
    for _ in range(2):
        metadata_cache.remember("w", ["widgets"], widgets)
        metadata_cache.remember("c", ["categories"], categories)

    metadata_cache.invalidate_resource("widgets")
    metadata_cache.remember("w", ["widgets"], widgets)
    metadata_cache.remember("c", ["categories"], categories)

    assert (widgets.calls, categories.calls) == (2, 1)


def test_invalidate_tenant_leaves_other_tenants(tenant, other_tenant, user, other_user):
    acme = Counter()
    globex = Counter()

    def touch():
        with tenant_context.using_tenant(tenant, user):
            metadata_cache.remember("k", [], acme)
        with tenant_context.using_tenant(other_tenant, other_user):
            metadata_cache.remember("k", [], globex)

    touch()
    metadata_cache.invalidate_tenant(tenant.id)
    touch()

    assert (acme.calls, globex.calls) == (2, 1)


def test_invalidate_all():
    compute = Counter()
    metadata_cache.remember("k", ["widgets"], compute)

    metadata_cache.invalidate_all()
    metadata_cache.remember("k", ["widgets"], compute)

    assert compute.calls == 2


@override_settings(METADATA_CACHE_ENABLED=False)
def test_disabled_cache_always_computes():
    compute = Counter()

    metadata_cache.remember("k", [], compute)
    metadata_cache.remember("k", [], compute)

    assert compute.calls == 2
    assert metadata_cache.misses == 0


def test_backend_failure_falls_back_to_compute():
    metadata_cache.use_backend(BrokenBackend())
    compute = Counter()

    assert metadata_cache.remember("k", [], compute) == "computed"
    metadata_cache.invalidate_all()
    assert metadata_cache.stats()["driver"] == "broken"


def test_compute_errors_propagate():
    def boom():
        raise RuntimeError("cannot build")

    with pytest.raises(RuntimeError):
        metadata_cache.remember("k", [], boom)


@override_settings(METADATA_CACHE_MONITORING=True)
def test_misses_are_published_when_monitoring():
    seen = []

    @subscribe("metadata_cache.miss")
    def collect(payload):
        seen.append(payload)

    try:
        metadata_cache.remember("k", [], Counter())
        metadata_cache.remember("k", [], Counter())
    finally:
        unsubscribe("metadata_cache.miss", collect)

    assert seen == [{"key": f"{metadata_cache.prefix}:global:k", "type": "metadata"}]


def test_stats():
    metadata_cache.remember("k", [], Counter())

    stats = metadata_cache.stats()

    assert stats["enabled"] is True
    assert stats["driver"] == "versioned"
    assert stats["supports_tags"] is False
    assert stats["misses"] == 1
