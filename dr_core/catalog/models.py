# dr_core/catalog/models.py
from django.db import models

from dr_core.common.models import TenantOwnedModel
from dr_core.resources.structure import StructureBuilder
from dr_core.tenancy.scope import TenantScopedManager, TenantScopedQuerySet


class WidgetStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PUBLISHED = "published", "Published"
    ARCHIVED = "archived", "Archived"


class Category(TenantOwnedModel):
    name = models.CharField(max_length=128)
    code = models.SlugField(max_length=64)

    class Meta(TenantOwnedModel.Meta):
        db_table = "catalog_category"
        constraints = [
            models.UniqueConstraint(fields=["tenant_id", "code"], name="uq_category_tenant_code"),
        ]

    def __str__(self) -> str:
        return self.name

    @classmethod
    def api_structure(cls):
        return (
            StructureBuilder.for_model(cls)
            .label("catalog.categories")
            .slug("categories")
            .uuid("id")
            .string("name")
            .string("code", searchable=False)
            .datetime("created_at")
            .build()
        )


class Tag(TenantOwnedModel):
    name = models.CharField(max_length=64)

    class Meta(TenantOwnedModel.Meta):
        db_table = "catalog_tag"

    def __str__(self) -> str:
        return self.name


class WidgetQuerySet(TenantScopedQuerySet):
    def in_stock(self, value="true"):
        if str(value).strip().lower() in ("0", "false", "no", "off"):
            return self.filter(quantity__lte=0)
        return self.filter(quantity__gt=0)


def _min_quantity(queryset, value, name):
    try:
        return queryset.filter(quantity__gte=int(value))
    except (TypeError, ValueError):
        return queryset.none()


class Widget(TenantOwnedModel):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    active = models.BooleanField(default=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    quantity = models.IntegerField(default=0)
    status = models.CharField(max_length=16, choices=WidgetStatus.choices, default=WidgetStatus.DRAFT)
    released_on = models.DateField(null=True, blank=True)
    attributes = models.JSONField(default=dict, blank=True)

    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="widgets",
    )
    tags = models.ManyToManyField(Tag, blank=True, related_name="widgets")

    objects = TenantScopedManager.from_queryset(WidgetQuerySet)()
    all_tenants = models.Manager()

    class Meta(TenantOwnedModel.Meta):
        db_table = "catalog_widget"
        indexes = [
            models.Index(fields=["tenant_id", "name"], name="widget_tenant_name_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    @classmethod
    def api_structure(cls):
        return (
            StructureBuilder.for_model(cls)
            .label("catalog.widgets")
            .slug("widgets")
            .uuid("id")
            .string("name", required=True)
            .text("description")
            .boolean("active")
            .decimal("price", places=2)
            .integer("quantity")
            .enum("status", WidgetStatus.values)
            .date("released_on")
            .datetime("created_at", readonly=True)
            .json("attributes")
            .relation("category", "name")
            .custom_filter("in_stock", "scope")
            .custom_filter("min_quantity", "callback", callback=_min_quantity)
            .sortable("name", "price", "quantity", "created_at", "released_on", "category.name")
            .searchable("name", "description", "category.name")
            .includes("category", "tags")
            .media_collection("images", max_files=5, mimes=["image/png", "image/jpeg"], conversions=["thumb"])
            .pagination(default=10, max=50)
            .build()
        )
