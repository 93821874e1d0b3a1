# dr_core/resources/tests/test_meta.py

import pytest

from dr_core.catalog.models import Category, Widget
from dr_core.resources.meta import ResourceMetaService
from dr_core.tenancy.context import tenant_context

pytestmark = pytest.mark.django_db


def test_meta_document(in_tenant, user):
    meta = ResourceMetaService.compile(Widget, user=user)

    assert meta["model"] == "Widget"
    assert meta["slug"] == "widgets"
    assert meta["endpoints"]["list"] == "/api/v1/widgets"
    assert meta["endpoints"]["view_entity"] == "/api/v1/widgets/{entity}"
    assert meta["endpoints"]["files"] == "/api/v1/widgets/{entity}/files/{collection}"
    assert meta["pagination"] == {"default_size": 10, "max_size": 50}
    assert {"name": "in_stock", "type": "scope"} in meta["custom_filters"]
    price = next(f for f in meta["fields"] if f["name"] == "price")
    assert price["type"] == "decimal:2"
    name = next(f for f in meta["fields"] if f["name"] == "name")
    assert name["required"] is True


def test_resources_without_media_have_no_file_endpoints(in_tenant, user):
    meta = ResourceMetaService.compile(Category, user=user)

    assert "files" not in meta["endpoints"]
    assert meta["media_collections"] == {}


def test_meta_is_cached_per_user(monkeypatch, in_tenant, user):
    calls = []
    original = ResourceMetaService.build

    def counting(model, user=None):
        calls.append(model)
        return original(model, user)

    monkeypatch.setattr(ResourceMetaService, "build", staticmethod(counting))

    ResourceMetaService.compile(Widget, user=user)
    ResourceMetaService.compile(Widget, user=user)
    ResourceMetaService.compile(Widget, user=None)

    assert len(calls) == 2


def test_cache_is_separate_per_tenant(monkeypatch, tenant, other_tenant, user, other_user):
    calls = []
    original = ResourceMetaService.build
    monkeypatch.setattr(
        ResourceMetaService, "build", staticmethod(lambda model, user=None: calls.append(1) or original(model, user))
    )

    with tenant_context.using_tenant(tenant, user):
        ResourceMetaService.compile(Widget)
    with tenant_context.using_tenant(other_tenant, other_user):
        ResourceMetaService.compile(Widget)

    assert len(calls) == 2


def test_invalidate_resource_rebuilds(monkeypatch, in_tenant, user):
    calls = []
    original = ResourceMetaService.build
    monkeypatch.setattr(
        ResourceMetaService, "build", staticmethod(lambda model, user=None: calls.append(1) or original(model, user))
    )

    ResourceMetaService.compile(Widget, user=user)
    ResourceMetaService.invalidate(Widget)
    ResourceMetaService.compile(Widget, user=user)

    assert len(calls) == 2


def test_saving_a_record_drops_its_meta(monkeypatch, in_tenant, tenant, user, make_widget):
    calls = []
    original = ResourceMetaService.build
    monkeypatch.setattr(
        ResourceMetaService, "build", staticmethod(lambda model, user=None: calls.append(1) or original(model, user))
    )

    ResourceMetaService.compile(Widget, user=user)
    ResourceMetaService.compile(Widget, user=user)
    make_widget(tenant, "Alpha")
    ResourceMetaService.compile(Widget, user=user)

    assert len(calls) == 2


def test_cache_keys_and_tags(user):
    assert ResourceMetaService.cache_key(Widget, user) == f"resource-meta:widgets:{user.pk}"
    assert ResourceMetaService.cache_key(Widget, None) == "resource-meta:widgets:anonymous"
    assert ResourceMetaService.cache_tags(Widget, user) == ["widgets", "resource-meta", f"user:{user.pk}"]
    assert ResourceMetaService.cache_tags(Widget) == ["widgets", "resource-meta"]
