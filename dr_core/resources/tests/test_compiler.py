# dr_core/resources/tests/test_compiler.py

import pytest

from dr_core.catalog.models import Category, Tag, Widget
from dr_core.resources import compiler
from dr_core.resources.exceptions import InvalidRegistration, InvalidStructure
from dr_core.resources.structure import StructureBuilder


def _patch_structure(monkeypatch, model, factory):
    compiler.clear_cache(model)
    monkeypatch.setattr(model, "api_structure", classmethod(lambda cls: factory()))


def test_structure_is_built_once_per_process(monkeypatch):
    calls = []
    original = Widget.api_structure

    def counting():
        calls.append(1)
        return original()

    _patch_structure(monkeypatch, Widget, counting)

    first = compiler.compile(Widget)
    second = compiler.compile(Widget)

    assert first is second
    assert len(calls) == 1


def test_clear_cache_forces_rebuild(monkeypatch):
    calls = []
    original = Category.api_structure

    def counting():
        calls.append(1)
        return original()

    _patch_structure(monkeypatch, Category, counting)

    compiler.compile(Category)
    compiler.clear_cache(Category)
    compiler.compile(Category)

    assert len(calls) == 2


def test_model_without_structure_cannot_compile():
    assert not compiler.declares_structure(Tag)
    with pytest.raises(InvalidRegistration):
        compiler.compile(Tag)


def test_non_structure_return_value_is_rejected(monkeypatch):
    _patch_structure(monkeypatch, Category, lambda: {"slug": "categories"})

    with pytest.raises(InvalidStructure):
        compiler.compile(Category)


@pytest.mark.parametrize(
    "declare",
    [
        # column missing on the model
        lambda b: b.string("colour"),
        # relation that is not a relation
        lambda b: b.relation("name", "id"),
        # sort on an undeclared field
        lambda b: b.string("name").sortable("quantity"),
        # filter on an undeclared field
        lambda b: b.string("name").filterable("quantity"),
        # search path through a non relation
        lambda b: b.string("name").searchable("name.first"),
        # include that is no relation
        lambda b: b.string("name").includes("name"),
        # scope filter without a queryset method
        lambda b: b.string("name").custom_filter("popular", "scope"),
        # exact filter on an unknown column
        lambda b: b.string("name").custom_filter("sku", "exact"),
    ],
)
def test_structure_must_match_model(monkeypatch, declare):
    _patch_structure(monkeypatch, Widget, lambda: declare(StructureBuilder.for_model(Widget).slug("widgets")).build())

    with pytest.raises(InvalidStructure):
        compiler.compile(Widget)


def test_failed_compile_is_not_memoized(monkeypatch):
    _patch_structure(monkeypatch, Widget, lambda: StructureBuilder.for_model(Widget).string("colour").build())

    with pytest.raises(InvalidStructure):
        compiler.compile(Widget)

    monkeypatch.undo()
    assert compiler.compile(Widget).slug == "widgets"


def test_relation_paths_on_undeclared_relation_are_accepted(monkeypatch):
    _patch_structure(
        monkeypatch,
        Widget,
        lambda: StructureBuilder.for_model(Widget)
        .slug("widgets")
        .string("name")
        .sortable("name", "category.name")
        .includes("category", "tags")
        .custom_filter("in_stock", "scope")
        .build(),
    )

    structure = compiler.compile(Widget)

    assert structure.is_sortable("category.name")
    assert structure.is_includable("tags")


def test_clear_all_drops_every_memo():
    compiler.compile(Widget)
    compiler.compile(Category)

    compiler.clear_all()

    assert "_dr_compiled_structure" not in Widget.__dict__
    assert "_dr_compiled_structure" not in Category.__dict__
