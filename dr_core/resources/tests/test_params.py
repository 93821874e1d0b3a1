# dr_core/resources/tests/test_params.py

from django.http import QueryDict

from dr_core.resources.params import nest, parse_query_params, split_csv


def _qd(query):
    return QueryDict(query)


def test_split_csv():
    assert split_csv("a, b,,c ") == ["a", "b", "c"]
    assert split_csv("") == []
    assert split_csv(None) == []


def test_nest_brackets():
    data = nest(_qd("filter[price][from]=1&filter[price][to]=5&filter[name]=x&sort=name"))

    assert data == {
        "filter": {"price": {"from": "1", "to": "5"}, "name": "x"},
        "sort": "name",
    }


def test_plain_value_then_range_keeps_both():
    data = nest(_qd("filter[released_on]=2024-01-01&filter[released_on][to]=2024-02-01"))

    assert data["filter"]["released_on"] == {"exact": "2024-01-01", "to": "2024-02-01"}


def test_parse_full_listing_query():
    params = parse_query_params(
        _qd(
            "filter[active]=true&filter[category.name]=Tools"
            "&sort=-price,name&search=%20bolt%20&include=category,tags"
            "&page[per_page]=5&page[cursor]=abc"
        )
    )

    assert params.filters == {"active": "true", "category.name": "Tools"}
    assert params.sort == ("-price", "name")
    assert params.search == "bolt"
    assert params.include == ("category", "tags")
    assert params.per_page == "5"
    assert params.cursor == "abc"


def test_parse_empty_query():
    params = parse_query_params(_qd(""))

    assert params.filters == {}
    assert params.sort == ()
    assert params.search is None
    assert params.include == ()
    assert params.per_page is None
    assert params.cursor is None


def test_malformed_shapes_are_ignored():
    params = parse_query_params(_qd("filter=oops&page=2&search[x]=1&sort[a]=b"))

    assert params.filters == {}
    assert params.page == {}
    assert params.search is None
    assert params.sort == ()
