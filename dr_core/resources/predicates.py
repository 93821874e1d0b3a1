# dr_core/resources/predicates.py
"""
Turns request parameters into QuerySet clauses, strictly within what a
resource's structure allows.

Everything is validated first and applied afterwards, so a bad parameter never
leaves a half-decorated queryset behind. Nothing here touches tenant
isolation: the queryset handed in already went through the scoped manager.
"""
from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional

import django_filters as filters
import structlog
from django.conf import settings
from django.core.exceptions import FieldDoesNotExist, ImproperlyConfigured
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import connections
from django.db.models import F, Q, QuerySet, Value
from django.db.models.functions import Coalesce

from dr_core.resources.exceptions import InvalidFilterRequest, InvalidSortRequest
from dr_core.resources.params import QueryParams, split_csv
from dr_core.resources.structure import FieldSpec, FieldType, FilterKind, ResourceStructure, SearchStrategy

logger = structlog.get_logger(__name__)

Clause = Callable[[QuerySet], QuerySet]

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}

RANGE_KEYS = {"from", "to", "exact"}

SORT_ALIAS_PREFIX = "sort_"


@dataclass(frozen=True)
class DecoratedQuery:
    queryset: QuerySet
    ordering: tuple[str, ...]
    includes: tuple[str, ...]


# -----------------------------
# value coercion
# -----------------------------
def _clean(flt: filters.Filter, name: str, raw: Any):
    try:
        return flt.field.clean(raw)
    except (DjangoValidationError, ValueError, TypeError) as exc:
        raise InvalidFilterRequest(name, f"Invalid value for filter '{name}'.") from exc


def _scalar(name: str, raw: Any) -> str:
    """Non-range fields accept a plain value or ``{exact: value}``."""
    if isinstance(raw, dict):
        if set(raw) == {"exact"}:
            return raw["exact"]
        raise InvalidFilterRequest(name, f"Filter '{name}' does not support range operators.")
    return raw


def _exact_values(flt: filters.Filter, name: str, raw: Any) -> Clause:
    values = split_csv(_scalar(name, raw))
    if not values:
        raise InvalidFilterRequest(name, f"Filter '{name}' needs a value.")

    cleaned = [_clean(flt, name, value) for value in values]
    path = flt.field_name
    if len(cleaned) == 1:
        return lambda qs: flt.filter(qs, cleaned[0])
    return lambda qs: qs.filter(**{f"{path}__in": cleaned})


def _partial_values(path: str, name: str, raw: Any) -> Clause:
    flt = filters.CharFilter(field_name=path, lookup_expr="icontains")
    values = [_clean(flt, name, value) for value in split_csv(_scalar(name, raw))]
    values = [v for v in values if v]
    if not values:
        raise InvalidFilterRequest(name, f"Filter '{name}' needs a value.")

    condition = Q()
    for value in values:
        condition |= Q(**{f"{path}__icontains": value})
    return lambda qs: qs.filter(condition)


# -----------------------------
# per-type handlers
# -----------------------------
def _exact_filter_for(spec: FieldSpec, path: str) -> filters.Filter:
    if spec.type is FieldType.IDENTIFIER:
        return filters.UUIDFilter(field_name=path)
    if spec.type in (FieldType.INTEGER, FieldType.FLOAT, FieldType.DECIMAL):
        return filters.NumberFilter(field_name=path)
    if spec.type is FieldType.ENUM:
        return filters.ChoiceFilter(field_name=path, choices=[(v, v) for v in spec.enum_values])
    return filters.CharFilter(field_name=path)


def _string_handler(model, spec: FieldSpec, name: str, raw: Any) -> Clause:
    if spec.name == model._meta.pk.name:
        return _exact_handler(model, spec, name, raw)
    return _partial_values(spec.lookup_path, name, raw)


def _exact_handler(model, spec: FieldSpec, name: str, raw: Any) -> Clause:
    return _exact_values(_exact_filter_for(spec, spec.lookup_path), name, raw)


def _boolean_handler(model, spec: FieldSpec, name: str, raw: Any) -> Clause:
    text = str(_scalar(name, raw)).strip().lower()
    if text in TRUE_VALUES:
        value = True
    elif text in FALSE_VALUES:
        value = False
    else:
        raise InvalidFilterRequest(name, f"Filter '{name}' expects a boolean.")

    flt = filters.BooleanFilter(field_name=spec.lookup_path)
    return lambda qs: flt.filter(qs, value)


def _date_bound(spec: FieldSpec, name: str, raw: Any, op: str) -> Q:
    """
    Date columns compare directly. Datetime columns compare on their date
    part when the bound is a bare date, on the full timestamp otherwise.
    """
    path = spec.lookup_path
    date_filter = filters.DateFilter(field_name=path)
    try:
        value = date_filter.field.clean(raw)
    except DjangoValidationError:
        value = None

    if value is not None:
        if spec.type is FieldType.DATETIME:
            return Q(**{f"{path}__date__{op}": value})
        return Q(**{f"{path}__{op}": value})

    if spec.type is FieldType.DATETIME:
        value = _clean(filters.DateTimeFilter(field_name=path), name, raw)
        return Q(**{f"{path}__{op}": value})

    raise InvalidFilterRequest(name, f"Invalid date for filter '{name}'.")


def _date_range_handler(model, spec: FieldSpec, name: str, raw: Any) -> Clause:
    if not isinstance(raw, dict):
        raw = {"exact": raw}

    unknown = set(raw) - RANGE_KEYS
    if unknown:
        raise InvalidFilterRequest(
            name, f"Unsupported operator(s) for filter '{name}': {', '.join(sorted(unknown))}."
        )

    condition = Q()
    if raw.get("exact"):
        condition &= _date_bound(spec, name, raw["exact"], "exact")
    if raw.get("from"):
        condition &= _date_bound(spec, name, raw["from"], "gte")
    if raw.get("to"):
        condition &= _date_bound(spec, name, raw["to"], "lte")

    if not condition:
        raise InvalidFilterRequest(name, f"Filter '{name}' needs a value.")
    return lambda qs: qs.filter(condition)


def _relation_handler(model, spec: FieldSpec, name: str, raw: Any) -> Clause:
    path = spec.lookup_path
    return _exact_values(_filter_for_relation_path(model, spec.relation_name, spec.relation_field, path), name, raw)


def _filter_for_relation_path(model, relation: str, column: str, path: str) -> filters.Filter:
    # pick the filter the target column's own type calls for
    try:
        target = model._meta.get_field(relation).related_model._meta.get_field(column)
        flt = filters.FilterSet.filter_for_field(target, path, "exact")
    except (FieldDoesNotExist, AttributeError, AssertionError):
        return filters.CharFilter(field_name=path)
    if isinstance(flt, (filters.ModelChoiceFilter, filters.ModelMultipleChoiceFilter)):
        return filters.CharFilter(field_name=path)
    return flt


_HANDLERS: dict[FieldType, Callable[..., Clause]] = {
    FieldType.STRING: _string_handler,
    FieldType.IDENTIFIER: _exact_handler,
    FieldType.INTEGER: _exact_handler,
    FieldType.FLOAT: _exact_handler,
    FieldType.DECIMAL: _exact_handler,
    FieldType.BOOLEAN: _boolean_handler,
    FieldType.DATE: _date_range_handler,
    FieldType.DATETIME: _date_range_handler,
    FieldType.RELATION: _relation_handler,
    FieldType.TEXT: _exact_handler,
    FieldType.JSON: _exact_handler,
    FieldType.ENUM: _exact_handler,
}

_missing = set(FieldType) - set(_HANDLERS)
if _missing:
    raise ImproperlyConfigured(f"No filter handler for field types: {sorted(t.value for t in _missing)}")


# -----------------------------
# filters
# -----------------------------
def _custom_clause(spec, name: str, raw: Any) -> Clause:
    if spec.kind is FilterKind.SCOPE:
        value = _scalar(name, raw)
        return lambda qs: getattr(qs, spec.name)(value)
    if spec.kind is FilterKind.CALLBACK:
        return lambda qs: spec.callback(qs, raw, name)
    column = spec.column or spec.name
    if spec.kind is FilterKind.PARTIAL:
        return _partial_values(column, name, raw)
    return _exact_values(filters.CharFilter(field_name=column), name, raw)


def _filter_clause(model, structure: ResourceStructure, name: str, raw: Any) -> Clause:
    custom = structure.custom_filters.get(name)
    if custom is not None:
        return _custom_clause(custom, name, raw)

    spec = structure.get_field(name)
    if spec is not None and structure.is_filterable(name):
        return _HANDLERS[spec.type](model, spec, name, raw)

    if "." in name:
        head, _, column = name.partition(".")
        relation = structure.relation_field(head)
        # "category.name" is accepted for a relation declared as "category"
        if relation is not None and relation.relation_field == column and structure.is_filterable(relation.name):
            return _HANDLERS[FieldType.RELATION](model, relation, name, raw)
        if structure.is_filterable(name):
            path = f"{head}__{column.replace('.', '__')}"
            return _exact_values(_filter_for_relation_path(model, head, column, path), name, raw)

    raise InvalidFilterRequest(name, f"Filtering is not allowed on '{name}'.")


def _is_known_filter(structure: ResourceStructure, name: str) -> bool:
    if name in structure.custom_filters or structure.is_filterable(name):
        return True
    head, _, column = name.partition(".")
    relation = structure.relation_field(head) if column else None
    return relation is not None and relation.relation_field == column and structure.is_filterable(relation.name)


def build_filter_clauses(model, structure: ResourceStructure, requested: dict[str, Any]) -> list[Clause]:
    clauses = []
    for name, raw in requested.items():
        if not _is_known_filter(structure, name):
            raise InvalidFilterRequest(name, f"Filtering is not allowed on '{name}'.")
        if raw in (None, "", {}):
            continue
        clauses.append(_filter_clause(model, structure, name, raw))
    return clauses


# -----------------------------
# sorting
# -----------------------------
def _sort_path(structure: ResourceStructure, name: str) -> str:
    spec = structure.get_field(name)
    if spec is not None:
        return spec.lookup_path
    return name.replace(".", "__")


def _null_floor(field) -> Any:
    """Lowest value of the column's type; nulls sort as this value."""
    internal = field.get_internal_type()
    if internal == "DateTimeField":
        floor = datetime.datetime.min
        return floor.replace(tzinfo=datetime.timezone.utc) if settings.USE_TZ else floor
    if internal == "DateField":
        return datetime.date.min
    if internal == "TimeField":
        return datetime.time.min
    if internal == "DecimalField":
        return Decimal(1 - 10 ** (field.max_digits - field.decimal_places))
    if internal == "FloatField":
        return -1e308
    if internal.endswith("IntegerField") or internal.endswith("AutoField"):
        return -(2 ** 31)
    if internal == "BooleanField":
        return False
    if internal == "UUIDField":
        return uuid.UUID(int=0)
    return ""


def _resolve_sort_field(model, path: str):
    """
    Returns ``(field, nullable)`` for a ``__`` separated path. A nullable
    relation on the way makes the whole path nullable.
    """
    nullable = False
    current = model
    field = None
    for part in path.split("__"):
        field = current._meta.pk if part == "pk" else current._meta.get_field(part)
        nullable = nullable or bool(getattr(field, "null", False))
        if field.is_relation:
            current = field.related_model
    if field is not None and field.is_relation:
        field = field.target_field
    return field, nullable


def _sort_expression(model, path: str):
    field, nullable = _resolve_sort_field(model, path)
    if not nullable:
        return F(path)
    return Coalesce(F(path), Value(_null_floor(field)), output_field=field)


def build_ordering(model, structure: ResourceStructure, requested) -> tuple[tuple[str, ...], dict[str, Any]]:
    """
    Returns ``(ordering, annotations)``. Paths that cross a relation or may
    hold nulls are exposed through an annotation so the paginator can read a
    non-null position back off each row. Nulls sort lowest.
    """
    invalid = [token.lstrip("-") for token in requested if not structure.is_sortable(token.lstrip("-"))]
    if invalid:
        raise InvalidSortRequest(invalid)

    pk_name = model._meta.pk.name
    ordering: list[str] = []
    annotations: dict[str, Any] = {}

    for token in requested:
        descending = token.startswith("-")
        path = _sort_path(structure, token.lstrip("-"))
        expression = _sort_expression(model, path)
        if "__" in path or not isinstance(expression, F):
            alias = SORT_ALIAS_PREFIX + path.replace("__", "_")
            annotations[alias] = expression
            path = alias
        if path in ("pk", pk_name) and any(o.lstrip("-") in ("pk", pk_name) for o in ordering):
            continue
        ordering.append(f"-{path}" if descending else path)

    # always end on the primary key so the order is total
    if not any(o.lstrip("-") in ("pk", pk_name) for o in ordering):
        ordering.append("pk")

    return tuple(ordering), annotations


# -----------------------------
# search
# -----------------------------
def _is_postgres(queryset: QuerySet) -> bool:
    return connections[queryset.db].vendor == "postgresql"


def _partial_search(model, fields, term: str) -> Q:
    condition = Q()
    for path in fields:
        if "." in path:
            lookup = path.replace(".", "__") + "__icontains"
            matching = model._base_manager.filter(**{lookup: term}).values("pk")
            condition |= Q(pk__in=matching)
        else:
            condition |= Q(**{f"{path}__icontains": term})
    return condition


def apply_search(model, structure: ResourceStructure, queryset: QuerySet, term: Optional[str]) -> QuerySet:
    term = (term or "").strip()
    if not term or not structure.search_fields:
        return queryset

    if structure.search_strategy is SearchStrategy.FULL_TEXT:
        local = [path for path in structure.search_fields if "." not in path]
        if local and _is_postgres(queryset):
            from django.contrib.postgres.search import SearchQuery, SearchVector

            return queryset.annotate(
                search_document=SearchVector(*local, config="english"),
            ).filter(search_document=SearchQuery(term, search_type="plain", config="english"))
        logger.debug("resource_search.full_text_fallback", slug=structure.slug, local_fields=local)

    return queryset.filter(_partial_search(model, structure.search_fields, term))


# -----------------------------
# includes
# -----------------------------
def resolve_includes(structure: ResourceStructure, requested) -> tuple[str, ...]:
    # unknown includes are dropped, never rejected
    return tuple(name for name in dict.fromkeys(requested) if structure.is_includable(name))


def apply_includes(model, queryset: QuerySet, includes) -> QuerySet:
    selected, prefetched = [], []
    for name in includes:
        try:
            f = model._meta.get_field(name)
        except FieldDoesNotExist:
            prefetched.append(name)
            continue
        if f.concrete and (f.many_to_one or f.one_to_one):
            selected.append(name)
        else:
            prefetched.append(name)
    if selected:
        queryset = queryset.select_related(*selected)
    if prefetched:
        queryset = queryset.prefetch_related(*prefetched)
    return queryset


# -----------------------------
# entry point
# -----------------------------
def decorate(model, structure: ResourceStructure, params: QueryParams, queryset: QuerySet) -> DecoratedQuery:
    clauses = build_filter_clauses(model, structure, params.filters)
    ordering, annotations = build_ordering(model, structure, params.sort)
    includes = resolve_includes(structure, params.include)

    for clause in clauses:
        queryset = clause(queryset)
    queryset = apply_search(model, structure, queryset, params.search)
    if annotations:
        queryset = queryset.annotate(**annotations)
    queryset = apply_includes(model, queryset, includes)

    return DecoratedQuery(queryset=queryset, ordering=ordering, includes=includes)
