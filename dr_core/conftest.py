# dr_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from django.core.cache import caches
from rest_framework.test import APIClient

from dr_core.cache.metadata import metadata_cache
from dr_core.catalog.models import Category, Widget
from dr_core.resources import compiler
from dr_core.tenancy.context import tenant_context
from dr_core.tenants.models import Tenant, TenantMembership


def org_headers(tenant):
    """
    Tenant header used by the API layer.
    DRF test client requires HTTP_ prefix.
    """
    return {"HTTP_X_ORGANIZATION_ID": str(tenant.id)}


@pytest.fixture(autouse=True)
def clean_tenant_context():
    tenant_context.clear()
    yield
    tenant_context.clear()


@pytest.fixture(autouse=True)
def fresh_metadata_cache():
    caches["default"].clear()
    metadata_cache.use_backend(None)
    metadata_cache.hits = 0
    metadata_cache.misses = 0
    yield
    metadata_cache.use_backend(None)


@pytest.fixture(autouse=True)
def fresh_structures():
    yield
    # tests may monkeypatch api_structure; drop whatever got memoized
    compiler.clear_all()


@pytest.fixture
def tenant(db):
    return Tenant.objects.create(code="acme", name="Acme")


@pytest.fixture
def other_tenant(db):
    return Tenant.objects.create(code="globex", name="Globex")


@pytest.fixture
def user(db, tenant):
    User = get_user_model()
    u = User.objects.create_user(username="member", password="testpass")
    TenantMembership.objects.create(tenant=tenant, user=u, role="editor")
    return u


@pytest.fixture
def other_user(db, other_tenant):
    User = get_user_model()
    u = User.objects.create_user(username="other-member", password="testpass")
    TenantMembership.objects.create(tenant=other_tenant, user=u, role="editor")
    return u


@pytest.fixture
def superuser(db):
    User = get_user_model()
    return User.objects.create_superuser(username="root", password="testpass", email="root@example.com")


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def in_tenant(tenant, user):
    """Enter ``tenant`` as ``user`` for the rest of the test."""
    with tenant_context.using_tenant(tenant, user):
        yield tenant


@pytest.fixture
def make_category(db):
    def _make(tenant, name, code=None):
        return Category.all_tenants.create(tenant_id=tenant.id, name=name, code=code or name.lower())
    return _make


@pytest.fixture
def make_widget(db):
    def _make(tenant, name, **fields):
        tags = fields.pop("tags", None)
        widget = Widget.all_tenants.create(tenant_id=tenant.id, name=name, **fields)
        if tags:
            widget.tags.set(tags)
        return widget
    return _make
