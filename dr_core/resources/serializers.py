# dr_core/resources/serializers.py
from __future__ import annotations

from typing import Any, Optional

from rest_framework import serializers

from dr_core.resources import compiler
from dr_core.resources.structure import FieldType, ResourceStructure, default_slug


def _type_for(model) -> str:
    from dr_core.resources.registry import registry

    return registry.slug_for(model) or default_slug(model)


def _attributes(instance, structure: Optional[ResourceStructure]) -> dict[str, Any]:
    pk_name = instance._meta.pk.name
    if structure is None:
        return {}
    return {
        spec.name: getattr(instance, spec.name, None)
        for spec in structure.fields
        if spec.type is not FieldType.RELATION and spec.name != pk_name
    }


def _identifier(instance, with_attributes: bool = False) -> dict[str, Any]:
    model = type(instance)
    data: dict[str, Any] = {"type": _type_for(model), "id": str(instance.pk)}
    if with_attributes:
        structure = compiler.compile(model) if compiler.declares_structure(model) else None
        data["attributes"] = _attributes(instance, structure)
    return data


class ResourceRecordSerializer(serializers.BaseSerializer):
    """
    Read-only rendering of one record:

        {"type": slug, "id": "...", "attributes": {...}, "relationships": {...}}

    Forward relations declared as relation fields always carry their linkage
    (read from the FK column, no query). Included relations are rendered with
    their own attributes.
    """

    def to_representation(self, instance) -> dict[str, Any]:
        structure: ResourceStructure = self.context["structure"]
        includes = self.context.get("includes", ())

        relationships: dict[str, Any] = {}
        for spec in structure.fields:
            if spec.type is not FieldType.RELATION or spec.relation_name in includes:
                continue
            linkage = self._linkage_from_column(instance, spec.relation_name)
            if linkage is not None:
                relationships[spec.relation_name] = {"data": linkage}

        for name in includes:
            relationships[name] = {"data": self._included(instance, name)}

        data: dict[str, Any] = {
            "type": structure.slug,
            "id": str(instance.pk),
            "attributes": _attributes(instance, structure),
        }
        if relationships:
            data["relationships"] = relationships
        return data

    @staticmethod
    def _linkage_from_column(instance, relation: str) -> Optional[dict[str, Any]]:
        field = instance._meta.get_field(relation)
        if not (field.concrete and (field.many_to_one or field.one_to_one)):
            return None
        value = getattr(instance, field.attname)
        if value is None:
            return None
        return {"type": _type_for(field.related_model), "id": str(value)}

    @staticmethod
    def _included(instance, name: str):
        related = getattr(instance, name, None)
        if related is None:
            return None
        if hasattr(related, "all"):
            return [_identifier(obj, with_attributes=True) for obj in related.all()]
        return _identifier(related, with_attributes=True)
