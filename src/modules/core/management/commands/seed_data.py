from __future__ import annotations

import random
from decimal import Decimal

from decouple import config
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from modules.accounts.models import Identity, Role
from modules.catalog.models import Product


class Command(BaseCommand):
    help = "Seed the database with the first super admin and a sample catalog."

    def add_arguments(self, parser):
        parser.add_argument("--admin-email", default=config("SEED_ADMIN_EMAIL", default=""))
        parser.add_argument(
            "--admin-password", default=config("SEED_ADMIN_PASSWORD", default="")
        )
        parser.add_argument("--skip-products", action="store_true")

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        with transaction.atomic():
            identities_created = self._seed_identities(
                options["admin_email"], options["admin_password"]
            )
            products = [] if options["skip_products"] else self._seed_products()

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"identities={identities_created}, "
                f"products={len(products)}"
            )
        )

    def _seed_identities(self, email: str, password: str) -> int:
        if Identity.objects.alive().filter(role=Role.SUPER_ADMIN).exists():
            self.stdout.write("A super admin already exists, skipping identities.")
            return 0
        if not email or not password:
            raise CommandError(
                "No super admin exists yet: pass --admin-email and --admin-password "
                "(or set SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD)."
            )
        Identity.objects.create_superuser(email, password, name="Store Owner")
        self.stdout.write(self.style.SUCCESS(f"Created super admin {email.lower()}"))
        return 1

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        catalog = [
            ("monitor-27", "Monitor 27\"", "Electronics", "Vista", Decimal("299.90")),
            ("mechanical-keyboard", "Mechanical Keyboard", "Electronics", "Keyo", Decimal("89.90")),
            ("gaming-mouse", "Gaming Mouse", "Electronics", "Keyo", Decimal("49.90")),
            ("laptop-14", "Laptop 14\"", "Electronics", "Vista", Decimal("999.00")),
            ("headset", "Headset", "Electronics", "Sonar", Decimal("79.90")),
            ("office-desk", "Office Desk", "Furniture", "Oakline", Decimal("249.00")),
            ("ergonomic-chair", "Ergonomic Chair", "Furniture", "Oakline", Decimal("349.00")),
            ("bookshelf", "Bookshelf", "Furniture", "Oakline", Decimal("159.00")),
            ("a4-paper", "A4 Paper (500 sheets)", "Office", "Papyr", Decimal("7.90")),
            ("notebook", "Notebook", "Office", "Papyr", Decimal("4.90")),
            ("stapler", "Stapler", "Office", "Clasp", Decimal("12.90")),
            ("desk-lamp", "LED Desk Lamp", "Office", "Lumo", Decimal("24.90")),
        ]
        for slug, name, category, brand, price in catalog:
            product, _ = Product.objects.get_or_create(
                slug=slug,
                defaults={
                    "name": name,
                    "category": category,
                    "brand": brand,
                    "price": price,
                    "stock": random.randint(10, 200),
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products
