# dr_core/resources/structure.py
"""
Declarative description of a resource: which columns it exposes and which of
them may be filtered, sorted, searched or included.

Models declare their structure with ``StructureBuilder``::

    @classmethod
    def api_structure(cls):
        return (
            StructureBuilder.for_model(cls)
            .label("catalog.widgets")
            .string("name")
            .boolean("active")
            .relation("category", "name")
            .includes("category")
            .pagination(default=10, max=50)
            .build()
        )

The builder only checks rules that do not need the model (decimal places,
relation targets, duplicate names, page sizes). Checks against the model
itself run in ``dr_core.resources.compiler``.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from dr_core.resources.exceptions import InvalidStructure

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


class FieldType(str, enum.Enum):
    IDENTIFIER = "uuid"
    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    JSON = "json"
    ENUM = "enum"
    RELATION = "relation"


class SearchStrategy(str, enum.Enum):
    PARTIAL_MATCH = "like"
    FULL_TEXT = "full_text"


class FilterKind(str, enum.Enum):
    PARTIAL = "partial"
    EXACT = "exact"
    SCOPE = "scope"
    CALLBACK = "callback"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    type: FieldType
    sortable: bool = False
    filterable: bool = False
    searchable: bool = False
    required: bool = False
    readonly: bool = False
    cast: Optional[str] = None
    relation_name: Optional[str] = None
    relation_field: Optional[str] = None
    enum_values: tuple[str, ...] = ()
    decimal_places: Optional[int] = None

    @property
    def wire_type(self) -> str:
        if self.type is FieldType.DECIMAL:
            return f"decimal:{self.decimal_places}"
        return self.type.value

    @property
    def lookup_path(self) -> str:
        """ORM path used when filtering or sorting by this field."""
        if self.type is FieldType.RELATION:
            return f"{self.relation_name}__{self.relation_field}"
        return self.name

    @property
    def search_path(self) -> str:
        if self.type is FieldType.RELATION:
            return f"{self.relation_name}.{self.relation_field}"
        return self.name

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "label": self.label,
            "type": self.wire_type,
            "sortable": self.sortable,
            "filterable": self.filterable,
            "searchable": self.searchable,
        }
        if self.required:
            data["required"] = True
        if self.readonly:
            data["readonly"] = True
        if self.cast:
            data["cast"] = self.cast
        if self.type is FieldType.RELATION:
            data["relation_name"] = self.relation_name
            data["relation_field"] = self.relation_field
        if self.type is FieldType.ENUM:
            data["enum_values"] = list(self.enum_values)
        return data


@dataclass(frozen=True)
class FilterSpec:
    """A named filter that does not map one-to-one onto a declared field."""

    name: str
    kind: FilterKind
    column: Optional[str] = None
    callback: Optional[Callable] = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.kind.value}


@dataclass(frozen=True)
class MediaCollection:
    name: str
    max_files: Optional[int] = None
    accepted_mimes: tuple[str, ...] = ()
    conversions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_files": self.max_files,
            "accepted_mimes": list(self.accepted_mimes),
            "conversions": list(self.conversions),
        }


@dataclass(frozen=True)
class PaginationPolicy:
    default_size: int = DEFAULT_PAGE_SIZE
    max_size: int = MAX_PAGE_SIZE
    # False when the resource relies on the global defaults
    declared: bool = False

    def to_dict(self) -> dict[str, int]:
        return {"default_size": self.default_size, "max_size": self.max_size}


@dataclass(frozen=True)
class ResourceStructure:
    slug: str
    label: str
    fields: tuple[FieldSpec, ...]
    sorts: tuple[str, ...]
    filters: tuple[str, ...]
    search_fields: tuple[str, ...]
    search_strategy: SearchStrategy = SearchStrategy.PARTIAL_MATCH
    allowed_includes: tuple[str, ...] = ()
    media_collections: dict[str, MediaCollection] = field(default_factory=dict)
    pagination: PaginationPolicy = field(default_factory=PaginationPolicy)
    custom_filters: dict[str, FilterSpec] = field(default_factory=dict)

    def get_field(self, name: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def relation_field(self, relation_name: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.type is FieldType.RELATION and spec.relation_name == relation_name:
                return spec
        return None

    def field_names(self) -> list[str]:
        return [spec.name for spec in self.fields]

    def is_sortable(self, name: str) -> bool:
        return name in self.sorts

    def is_filterable(self, name: str) -> bool:
        return name in self.filters

    def is_includable(self, name: str) -> bool:
        return name in self.allowed_includes

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "label": self.label,
            "slug": self.slug,
            "fields": [spec.to_dict() for spec in self.fields],
            "filters": list(self.filters),
            "sorts": list(self.sorts),
            "allowed_includes": list(self.allowed_includes),
            "search": {
                "strategy": self.search_strategy.value,
                "fields": list(self.search_fields),
            },
            "pagination": self.pagination.to_dict(),
        }
        if self.media_collections:
            data["media_collections"] = {
                name: collection.to_dict() for name, collection in self.media_collections.items()
            }
        return data


def default_slug(model) -> str:
    name = model.__name__
    return re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()


def _unique(names) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))


class StructureBuilder:
    """
    Fluent builder for ``ResourceStructure``.

    Per-type helpers pick sensible flags: strings are sortable, filterable and
    searchable; text is searchable only; json is none of them; relations are
    filterable.
    """

    def __init__(self, model=None):
        self._model = model
        self._label = ""
        self._slug: Optional[str] = None
        self._fields: list[FieldSpec] = []
        self._sorts: list[str] = []
        self._filters: list[str] = []
        self._search_fields: list[str] = []
        self._search_strategy = SearchStrategy.PARTIAL_MATCH
        self._includes: list[str] = []
        self._media: dict[str, MediaCollection] = {}
        self._pagination: Optional[PaginationPolicy] = None
        self._custom_filters: dict[str, FilterSpec] = {}

    @classmethod
    def for_model(cls, model) -> "StructureBuilder":
        return cls(model)

    # -----------------------------
    # identity
    # -----------------------------
    def label(self, label: str) -> "StructureBuilder":
        self._label = label
        return self

    def slug(self, slug: str) -> "StructureBuilder":
        self._slug = slug
        return self

    # -----------------------------
    # fields
    # -----------------------------
    def field(
        self,
        name: str,
        type: FieldType,
        label: Optional[str] = None,
        sortable: bool = False,
        filterable: bool = False,
        searchable: bool = False,
        **extra,
    ) -> "StructureBuilder":
        self._fields.append(
            FieldSpec(
                name=name,
                label=label or f"fields.{name}",
                type=FieldType(type),
                sortable=sortable,
                filterable=filterable,
                searchable=searchable,
                **extra,
            )
        )
        return self

    def uuid(self, name: str, label: Optional[str] = None, sortable: bool = True, **extra) -> "StructureBuilder":
        return self.field(name, FieldType.IDENTIFIER, label, sortable=sortable, filterable=True, **extra)

    def string(
        self,
        name: str,
        label: Optional[str] = None,
        searchable: bool = True,
        sortable: bool = True,
        filterable: bool = True,
        **extra,
    ) -> "StructureBuilder":
        return self.field(
            name, FieldType.STRING, label, sortable=sortable, filterable=filterable, searchable=searchable, **extra
        )

    def text(self, name: str, label: Optional[str] = None, searchable: bool = True, **extra) -> "StructureBuilder":
        return self.field(name, FieldType.TEXT, label, searchable=searchable, **extra)

    def integer(self, name: str, label: Optional[str] = None, sortable: bool = True, **extra) -> "StructureBuilder":
        return self.field(name, FieldType.INTEGER, label, sortable=sortable, filterable=True, **extra)

    def float(self, name: str, label: Optional[str] = None, sortable: bool = True, **extra) -> "StructureBuilder":
        return self.field(name, FieldType.FLOAT, label, sortable=sortable, filterable=True, **extra)

    def decimal(
        self, name: str, places: int = 2, label: Optional[str] = None, sortable: bool = True, **extra
    ) -> "StructureBuilder":
        return self.field(
            name, FieldType.DECIMAL, label, sortable=sortable, filterable=True, decimal_places=places, **extra
        )

    def boolean(self, name: str, label: Optional[str] = None, **extra) -> "StructureBuilder":
        return self.field(name, FieldType.BOOLEAN, label, sortable=True, filterable=True, **extra)

    def date(self, name: str, label: Optional[str] = None, sortable: bool = True, **extra) -> "StructureBuilder":
        return self.field(name, FieldType.DATE, label, sortable=sortable, filterable=True, **extra)

    def datetime(self, name: str, label: Optional[str] = None, sortable: bool = True, **extra) -> "StructureBuilder":
        return self.field(name, FieldType.DATETIME, label, sortable=sortable, filterable=True, **extra)

    def json(self, name: str, label: Optional[str] = None, **extra) -> "StructureBuilder":
        return self.field(name, FieldType.JSON, label, **extra)

    def enum(self, name: str, values, label: Optional[str] = None, **extra) -> "StructureBuilder":
        return self.field(
            name, FieldType.ENUM, label, sortable=True, filterable=True, enum_values=tuple(values), **extra
        )

    def relation(
        self, name: str, relation_field: str, label: Optional[str] = None, sortable: bool = False, **extra
    ) -> "StructureBuilder":
        return self.field(
            name,
            FieldType.RELATION,
            label,
            sortable=sortable,
            filterable=True,
            relation_name=extra.pop("relation_name", name),
            relation_field=relation_field,
            **extra,
        )

    # -----------------------------
    # capabilities
    # -----------------------------
    def sortable(self, *names: str) -> "StructureBuilder":
        self._sorts.extend(names)
        return self

    def filterable(self, *names: str) -> "StructureBuilder":
        self._filters.extend(names)
        return self

    def custom_filter(
        self,
        name: str,
        kind: FilterKind | str = FilterKind.EXACT,
        *,
        column: Optional[str] = None,
        callback: Optional[Callable] = None,
    ) -> "StructureBuilder":
        self._custom_filters[name] = FilterSpec(name=name, kind=FilterKind(kind), column=column, callback=callback)
        return self

    def searchable(self, *names: str) -> "StructureBuilder":
        self._search_fields.extend(names)
        return self

    def search_strategy(self, strategy: SearchStrategy | str) -> "StructureBuilder":
        try:
            self._search_strategy = SearchStrategy(strategy)
        except ValueError as exc:
            raise InvalidStructure(f"Unknown search strategy '{strategy}'.") from exc
        return self

    def full_text_search(self, *names: str) -> "StructureBuilder":
        self._search_strategy = SearchStrategy.FULL_TEXT
        self._search_fields.extend(names)
        return self

    def includes(self, *relations: str) -> "StructureBuilder":
        self._includes.extend(relations)
        return self

    def media_collection(
        self,
        name: str,
        max_files: Optional[int] = None,
        mimes=(),
        conversions=(),
    ) -> "StructureBuilder":
        self._media[name] = MediaCollection(
            name=name,
            max_files=max_files,
            accepted_mimes=tuple(mimes),
            conversions=tuple(conversions),
        )
        return self

    def pagination(self, default: int = DEFAULT_PAGE_SIZE, max: int = MAX_PAGE_SIZE) -> "StructureBuilder":
        self._pagination = PaginationPolicy(default_size=default, max_size=max, declared=True)
        return self

    # -----------------------------
    # build
    # -----------------------------
    def build(self) -> ResourceStructure:
        slug = self._slug or (default_slug(self._model) if self._model is not None else "")
        if not slug:
            raise InvalidStructure("A resource needs a slug or a model to derive one from.")

        self._validate_fields(slug)

        pagination = self._pagination or PaginationPolicy()
        if pagination.default_size <= 0 or pagination.max_size <= 0:
            raise InvalidStructure(f"[{slug}] page sizes must be positive.")
        if pagination.default_size > pagination.max_size:
            raise InvalidStructure(f"[{slug}] default page size exceeds the maximum.")

        filters = self._filters or [f.name for f in self._fields if f.filterable]
        filters = list(filters) + [name for name in self._custom_filters if name not in filters]

        return ResourceStructure(
            slug=slug,
            label=self._label,
            fields=tuple(self._fields),
            sorts=_unique(self._sorts or [f.name for f in self._fields if f.sortable]),
            filters=_unique(filters),
            search_fields=_unique(self._search_fields or [f.search_path for f in self._fields if f.searchable]),
            search_strategy=self._search_strategy,
            allowed_includes=_unique(self._includes),
            media_collections=dict(self._media),
            pagination=pagination,
            custom_filters=dict(self._custom_filters),
        )

    def _validate_fields(self, slug: str) -> None:
        seen: set[str] = set()
        for spec in self._fields:
            if spec.name in seen:
                raise InvalidStructure(f"[{slug}] field '{spec.name}' is declared twice.")
            seen.add(spec.name)

            if spec.type is FieldType.DECIMAL and spec.decimal_places is None:
                raise InvalidStructure(f"[{slug}] decimal field '{spec.name}' needs decimal places.")
            if spec.type is FieldType.RELATION and not (spec.relation_name and spec.relation_field):
                raise InvalidStructure(f"[{slug}] relation field '{spec.name}' needs a relation and a column.")
            if spec.type is FieldType.ENUM and not spec.enum_values:
                raise InvalidStructure(f"[{slug}] enum field '{spec.name}' needs its values.")

        for name, spec in self._custom_filters.items():
            if spec.kind is FilterKind.CALLBACK and not callable(spec.callback):
                raise InvalidStructure(f"[{slug}] callback filter '{name}' needs a callable.")
