# dr_core/tenancy/tests/test_scope.py

import pytest

from dr_core.catalog.models import Widget
from dr_core.tenancy.context import tenant_context

pytestmark = pytest.mark.django_db


def _names(qs):
    return sorted(qs.values_list("name", flat=True))


def test_default_manager_returns_only_active_tenant_rows(tenant, other_tenant, user, other_user, make_widget):
    make_widget(tenant, "Alpha")
    make_widget(other_tenant, "Omega")

    with tenant_context.using_tenant(tenant, user):
        assert _names(Widget.objects.all()) == ["Alpha"]

    with tenant_context.using_tenant(other_tenant, other_user):
        assert _names(Widget.objects.all()) == ["Omega"]


def test_get_by_pk_of_other_tenant_is_not_found(tenant, other_tenant, user, make_widget):
    foreign = make_widget(other_tenant, "Omega")

    with tenant_context.using_tenant(tenant, user):
        with pytest.raises(Widget.DoesNotExist):
            Widget.objects.get(pk=foreign.pk)


def test_global_override_sees_every_tenant(tenant, other_tenant, superuser, make_widget):
    make_widget(tenant, "Alpha")
    make_widget(other_tenant, "Omega")

    with tenant_context.using_global_override(superuser):
        assert _names(Widget.objects.all()) == ["Alpha", "Omega"]


def test_no_context_applies_no_filter(tenant, other_tenant, make_widget):
    make_widget(tenant, "Alpha")
    make_widget(other_tenant, "Omega")

    assert _names(Widget.objects.all()) == ["Alpha", "Omega"]


def test_escape_hatches_ignore_active_context(tenant, other_tenant, user, make_widget):
    make_widget(tenant, "Alpha")
    make_widget(other_tenant, "Omega")

    with tenant_context.using_tenant(tenant, user):
        assert _names(Widget.all_tenants.all()) == ["Alpha", "Omega"]
        assert _names(Widget.without_tenant_scope()) == ["Alpha", "Omega"]
        assert _names(Widget.objects.without_tenant_scope()) == ["Alpha", "Omega"]
        assert _names(Widget.for_tenant(other_tenant.id)) == ["Omega"]
        assert _names(Widget.objects.for_tenant(other_tenant.id)) == ["Omega"]


def test_save_stamps_active_tenant(in_tenant):
    w = Widget(name="Fresh")
    w.save()

    assert w.tenant_id == in_tenant.id


def test_save_does_not_overwrite_explicit_tenant(tenant, other_tenant, user):
    with tenant_context.using_tenant(tenant, user):
        w = Widget(name="Explicit", tenant_id=other_tenant.id)
        w.save()

    assert Widget.all_tenants.get(pk=w.pk).tenant_id == other_tenant.id


def test_bulk_create_stamps_active_tenant(in_tenant):
    Widget.objects.bulk_create([Widget(name="One"), Widget(name="Two")])

    assert set(Widget.all_tenants.values_list("tenant_id", flat=True)) == {in_tenant.id}


def test_queryset_helpers_stay_scoped(tenant, other_tenant, user, make_widget):
    make_widget(tenant, "Stocked", quantity=3)
    make_widget(tenant, "Empty", quantity=0)
    make_widget(other_tenant, "Foreign", quantity=9)

    with tenant_context.using_tenant(tenant, user):
        assert _names(Widget.objects.in_stock()) == ["Stocked"]
        assert _names(Widget.objects.all().in_stock("false")) == ["Empty"]
