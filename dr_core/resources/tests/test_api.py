# dr_core/resources/tests/test_api.py

import pytest

from dr_core.conftest import org_headers

pytestmark = pytest.mark.django_db


@pytest.fixture
def client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client


def test_list_envelope(client, tenant, make_widget):
    make_widget(tenant, "Alpha", active=True)
    make_widget(tenant, "Beta", active=False)

    resp = client.get("/api/v1/widgets/", {"filter[active]": "true"}, **org_headers(tenant))

    assert resp.status_code == 200, resp.data
    body = resp.json()
    assert [row["attributes"]["name"] for row in body["data"]] == ["Alpha"]
    assert set(body["links"]) == {"first", "prev", "next"}
    assert body["meta"]["page"]["per_page"] == 10


def test_invalid_filter_envelope(client, tenant):
    resp = client.get("/api/v1/widgets/", {"filter[tenant_id]": "x"}, **org_headers(tenant))

    assert resp.status_code == 400
    err = resp.data["error"]
    assert err["code"] == "invalid_filter"
    assert err["message"] == "Filtering is not allowed on 'tenant_id'."
    assert err["details"] == {"filter": "tenant_id"}
    assert err["request_id"]


def test_invalid_sort_envelope(client, tenant):
    resp = client.get("/api/v1/widgets/", {"sort": "-description"}, **org_headers(tenant))

    assert resp.status_code == 400
    assert resp.data["error"]["code"] == "invalid_sort"
    assert resp.data["error"]["details"] == {"sort": ["description"]}


def test_unknown_resource_envelope(client, tenant):
    resp = client.get("/api/v1/gadgets/", **org_headers(tenant))

    assert resp.status_code == 404
    assert resp.data["error"]["code"] == "unknown_resource"
    assert resp.data["error"]["message"] == "Unknown resource type 'gadgets'."


def test_retrieve_endpoint(client, tenant, other_tenant, make_widget):
    mine = make_widget(tenant, "Alpha")
    theirs = make_widget(other_tenant, "Omega")

    ok = client.get(f"/api/v1/widgets/{mine.pk}/", **org_headers(tenant))
    missing = client.get(f"/api/v1/widgets/{theirs.pk}/", **org_headers(tenant))

    assert ok.status_code == 200
    assert ok.json()["data"]["attributes"]["name"] == "Alpha"
    assert missing.status_code == 404
    assert missing.data["error"]["code"] == "not_found"


def test_meta_endpoint(client, tenant):
    resp = client.get("/api/v1/meta/widgets/", **org_headers(tenant))

    assert resp.status_code == 200
    assert resp.json()["data"]["slug"] == "widgets"


def test_meta_endpoint_unknown_resource(client, tenant):
    resp = client.get("/api/v1/meta/gadgets/", **org_headers(tenant))

    assert resp.status_code == 404
    assert resp.data["error"]["code"] == "unknown_resource"


def test_request_id_is_stable_within_request(client, tenant):
    resp = client.get("/api/v1/gadgets/", HTTP_X_ORGANIZATION_ID="bad")

    assert resp.status_code == 400
    assert len(resp.data["error"]["request_id"]) == 32


def test_invalid_cursor_is_not_found(client, tenant):
    resp = client.get("/api/v1/widgets/", {"page[cursor]": "garbage"}, **org_headers(tenant))

    assert resp.status_code == 404
    assert resp.data["error"]["code"] == "not_found"
