# dr_core/resources/params.py
"""
Query-string grammar for resource listings.

    filter[<field>]=<v>
    filter[<field>][from]=<v>&filter[<field>][to]=<v>
    filter[<field>][exact]=<v>
    sort=name,-created_at
    search=<term>
    page[per_page]=<n>&page[cursor]=<token>
    include=category,tags
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

_BRACKETED = re.compile(r"^(?P<root>[^\[\]]+)(?P<rest>(\[[^\[\]]*\])+)$")
_SEGMENT = re.compile(r"\[([^\[\]]*)\]")


@dataclass(frozen=True)
class QueryParams:
    filters: dict[str, Any] = field(default_factory=dict)
    sort: tuple[str, ...] = ()
    search: Optional[str] = None
    include: tuple[str, ...] = ()
    page: dict[str, str] = field(default_factory=dict)

    @property
    def per_page(self) -> Optional[str]:
        return self.page.get("per_page")

    @property
    def cursor(self) -> Optional[str]:
        return self.page.get("cursor")


def split_csv(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in str(value).split(",") if part.strip()]


def _assign(target: dict, path: list[str], value: str) -> None:
    node = target
    for key in path[:-1]:
        existing = node.get(key)
        if not isinstance(existing, dict):
            # filter[x]=1 followed by filter[x][from]=... : the nested form wins
            existing = {} if existing is None else {"exact": existing}
            node[key] = existing
        node = existing
    last = path[-1]
    if isinstance(node.get(last), dict):
        node[last]["exact"] = value
    else:
        node[last] = value


def nest(querydict) -> dict[str, Any]:
    """
    ``{"filter[price][from]": "1"}`` -> ``{"filter": {"price": {"from": "1"}}}``.
    Repeated keys keep the last value.
    """
    out: dict[str, Any] = {}
    for key in querydict.keys():
        value = querydict.get(key)
        match = _BRACKETED.match(key)
        if not match:
            _assign(out, [key], value)
            continue
        path = [match.group("root")] + _SEGMENT.findall(match.group("rest"))
        _assign(out, path, value)
    return out


def parse_query_params(querydict) -> QueryParams:
    data = nest(querydict)

    filters = data.get("filter")
    if not isinstance(filters, dict):
        filters = {}

    page = data.get("page")
    if not isinstance(page, dict):
        page = {}

    search = data.get("search")
    if isinstance(search, str):
        search = search.strip() or None
    else:
        search = None

    return QueryParams(
        filters=filters,
        sort=tuple(split_csv(data.get("sort") if isinstance(data.get("sort"), str) else None)),
        search=search,
        include=tuple(split_csv(data.get("include") if isinstance(data.get("include"), str) else None)),
        page={k: v for k, v in page.items() if isinstance(v, str)},
    )
