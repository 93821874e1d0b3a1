# dr_core/resources/tests/test_registry.py

import pytest

from dr_core.catalog.models import Category, Tag, Widget
from dr_core.resources.exceptions import InvalidRegistration, UnknownResource
from dr_core.resources.registry import ResourceRegistry, registry


def test_app_registry_discovers_catalog_models():
    assert registry.get("widgets") is Widget
    assert registry.get("categories") is Category
    assert registry.slug_for(Widget) == "widgets"
    assert registry.slug_for(Tag) is None


def test_register_and_resolve():
    reg = ResourceRegistry()

    assert reg.register(Widget) == "widgets"
    assert reg.has("widgets")
    assert reg.resolve("widgets") is Widget
    assert reg.slugs() == ["widgets"]
    assert reg.all() == {"widgets": Widget}


def test_unknown_slug():
    reg = ResourceRegistry()

    assert reg.get("gadgets") is None
    with pytest.raises(UnknownResource) as exc:
        reg.resolve("gadgets")
    assert exc.value.slug == "gadgets"
    assert exc.value.status_code == 404


def test_model_without_structure_is_rejected():
    with pytest.raises(InvalidRegistration):
        ResourceRegistry().register(Tag)


def test_registering_same_slug_replaces_model(monkeypatch):
    reg = ResourceRegistry()
    reg.register(Widget)

    class Imposter:
        @classmethod
        def api_structure(cls):
            return Widget.api_structure()

    monkeypatch.setattr("dr_core.resources.compiler.validate", lambda model, structure: None)
    reg.register(Imposter)

    assert reg.resolve("widgets") is Imposter
    assert reg.slug_for(Widget) is None


def test_autodiscover_and_clear():
    reg = ResourceRegistry()

    found = reg.autodiscover()

    assert {"widgets", "categories"} <= set(found)
    reg.clear()
    assert reg.slugs() == []
