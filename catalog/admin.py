"""Admin registration for catalog models."""

from django.contrib import admin

from .models import Attribute, Product, ProductAttributeValue, ProductVariant


@admin.register(Attribute)
class AttributeAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "input_type", "sort_order")
    search_fields = ("name", "code")
    list_filter = ("input_type",)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("title", "slug", "status")
    search_fields = ("title", "slug")
    list_filter = ("status",)
    prepopulated_fields = {"slug": ("title",)}


class ProductAttributeValueInline(admin.TabularInline):
    model = ProductAttributeValue
    extra = 0


@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = ("product", "sku", "barcode", "status", "price", "cost_price")
    search_fields = ("sku", "barcode")
    list_filter = ("status",)
    # Cost price is owned by the import flow
    readonly_fields = ("cost_price",)
    inlines = [ProductAttributeValueInline]
