"""Seed catalog and opening stock for development sanity-check.

Creates the attribute registry, a few products and their variants, each with
a stock record and opening balance. Re-running is idempotent; existing items
are reused by code/slug/sku.
"""

from catalog.models import Attribute, Product, ProductVariant
from catalog.services import create_variant
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify


class Command(BaseCommand):
    help = "Seed initial catalog data (attributes, products, variants with opening stock)"

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Seeding catalog data...")

        attributes = [
            ("Color", "color", Attribute.INPUT_SELECT, ["Red", "Ivory", "Black"]),
            ("Size", "size", Attribute.INPUT_SELECT, ["S", "M", "L"]),
            ("Weight (g)", "weight", Attribute.INPUT_NUMBER, None),
        ]
        for order, (name, code, input_type, allowed) in enumerate(attributes):
            Attribute.objects.get_or_create(
                code=code,
                defaults={"name": name, "input_type": input_type, "allowed_values": allowed, "sort_order": order},
            )

        products = [
            {
                "title": "Silk Scarf",
                "variants": [
                    {"sku": "SCARF-RED", "price": "350000", "qty": 12, "attributes": {"color": "Red"}},
                    {"sku": "SCARF-IVORY", "price": "350000", "qty": 4, "attributes": {"color": "Ivory"}},
                ],
            },
            {
                "title": "Linen Shirt",
                "variants": [
                    {"sku": "SHIRT-S", "price": "590000", "qty": 0, "attributes": {"size": "S", "weight": 180}},
                    {"sku": "SHIRT-M", "price": "590000", "qty": 25, "attributes": {"size": "M", "weight": 190}},
                ],
            },
        ]

        created = 0
        for p in products:
            product, _ = Product.objects.get_or_create(
                slug=slugify(p["title"]),
                defaults={"title": p["title"], "status": Product.STATUS_PUBLISHED},
            )
            for v in p["variants"]:
                if ProductVariant.objects.filter(sku=v["sku"]).exists():
                    continue
                create_variant(
                    product=product,
                    sku=v["sku"],
                    price=v["price"],
                    attributes=v["attributes"],
                    opening_quantity=v["qty"],
                )
                created += 1

        self.stdout.write(self.style.SUCCESS(f"Catalog seed complete ({created} variants created)."))
