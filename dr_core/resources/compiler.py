# dr_core/resources/compiler.py
from __future__ import annotations

import structlog
from django.apps import apps
from django.core.exceptions import FieldDoesNotExist

from dr_core.resources.exceptions import InvalidRegistration, InvalidStructure
from dr_core.resources.structure import FieldType, FilterKind, ResourceStructure

logger = structlog.get_logger(__name__)

# Memo lives on the model class itself; looked up through __dict__ so a
# subclass never reuses its parent's structure.
_MEMO_ATTR = "_dr_compiled_structure"


def declares_structure(model) -> bool:
    return callable(getattr(model, "api_structure", None))


def compile(model) -> ResourceStructure:
    """
    Return the validated structure of ``model``.

    ``model.api_structure()`` runs once per process; every later call is a
    plain attribute read.
    """
    cached = model.__dict__.get(_MEMO_ATTR)
    if cached is not None:
        return cached

    if not declares_structure(model):
        raise InvalidRegistration(f"{model.__name__} does not declare an api_structure().")

    structure = model.api_structure()
    if not isinstance(structure, ResourceStructure):
        raise InvalidStructure(
            f"{model.__name__}.api_structure() must return a ResourceStructure, got {type(structure).__name__}."
        )

    validate(model, structure)
    setattr(model, _MEMO_ATTR, structure)
    logger.debug("resource_structure.compiled", model=model.__name__, slug=structure.slug)
    return structure


def clear_cache(model) -> None:
    if _MEMO_ATTR in model.__dict__:
        delattr(model, _MEMO_ATTR)


def clear_all() -> None:
    for model in apps.get_models():
        clear_cache(model)


# -----------------------------
# validation against the model
# -----------------------------
def _model_field(model, name: str):
    try:
        return model._meta.get_field(name)
    except FieldDoesNotExist:
        return None


def _is_relation(model, name: str) -> bool:
    f = _model_field(model, name)
    return f is not None and f.is_relation


def _check_path(model, structure: ResourceStructure, name: str, what: str) -> None:
    """
    ``name`` must be a declared field, or ``relation.column`` whose head is a
    declared relation field (or at least a real relation on the model).
    """
    if structure.get_field(name) is not None:
        return
    if "." in name:
        head = name.split(".", 1)[0]
        if structure.relation_field(head) is not None:
            return
        if _is_relation(model, head):
            return
    raise InvalidStructure(f"[{structure.slug}] {what} '{name}' does not match any declared field.")


def validate(model, structure: ResourceStructure) -> None:
    slug = structure.slug

    for spec in structure.fields:
        if spec.type is FieldType.RELATION:
            if not _is_relation(model, spec.relation_name):
                raise InvalidStructure(
                    f"[{slug}] relation field '{spec.name}' points at '{spec.relation_name}', "
                    f"which is not a relation of {model.__name__}."
                )
        elif _model_field(model, spec.name) is None:
            raise InvalidStructure(f"[{slug}] field '{spec.name}' is not a column of {model.__name__}.")

    for name in structure.sorts:
        _check_path(model, structure, name, "sort")

    for name in structure.filters:
        if name in structure.custom_filters:
            continue
        _check_path(model, structure, name, "filter")

    for name in structure.search_fields:
        _check_path(model, structure, name, "search field")

    for name in structure.allowed_includes:
        declared = structure.relation_field(name) is not None
        if not declared and not _is_relation(model, name):
            raise InvalidStructure(f"[{slug}] include '{name}' is not a relation of {model.__name__}.")

    queryset_class = type(model._default_manager.all())
    for name, spec in structure.custom_filters.items():
        if spec.kind is FilterKind.SCOPE and not callable(getattr(queryset_class, name, None)):
            raise InvalidStructure(f"[{slug}] scope filter '{name}' has no matching queryset method.")
        if spec.kind is FilterKind.CALLBACK and not callable(spec.callback):
            raise InvalidStructure(f"[{slug}] callback filter '{name}' needs a callable.")
        if spec.kind in (FilterKind.PARTIAL, FilterKind.EXACT):
            column = spec.column or name
            if _model_field(model, column.split("__")[0]) is None:
                raise InvalidStructure(f"[{slug}] filter '{name}' targets unknown column '{column}'.")
