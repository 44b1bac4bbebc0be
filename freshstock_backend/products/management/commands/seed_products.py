import random
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.utils import timezone

from products.models import Product
from products.services.stock_intake import receive_batch


class Command(BaseCommand):
    help = "Seed perishable products and FEFO stock batches (development only)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--batches",
            type=int,
            default=3,
            help="Batches to receive per product (default: 3)",
        )
        parser.add_argument(
            "--seed",
            type=int,
            default=None,
            help="Random seed for reproducible quantities",
        )

    def handle(self, *args, **options):
        if options["seed"] is not None:
            random.seed(options["seed"])

        self.stdout.write(self.style.WARNING("Seeding products and stock..."))

        # -------------------------------
        # PRODUCTS
        # -------------------------------
        products_data = [
            ("4006381333931", "Whole Milk 1L", "1.29", 12),
            ("4008400402222", "Greek Yogurt 500g", "2.49", 6),
            ("4001686301265", "Sourdough Loaf", "3.10", 1),
            ("4000417025005", "Free-range Eggs (10)", "3.79", 10),
            ("4311596435326", "Baby Spinach 200g", "1.99", 8),
        ]

        product_objs = []

        for barcode, name, price, per_package in products_data:
            product, _ = Product.objects.get_or_create(
                barcode=barcode,
                defaults={
                    "name": name,
                    "unit_price": Decimal(price),
                    "units_per_package": per_package,
                },
            )
            product_objs.append(product)

        # -------------------------------
        # STOCK BATCHES (FEFO)
        # -------------------------------
        today = timezone.localdate()
        received = 0

        for product in product_objs:
            if product.stock_batches.exists():
                continue

            for i in range(options["batches"]):
                receive_batch(
                    product=product,
                    quantity=random.randint(20, 50),
                    received_date=today - timedelta(days=2),
                    expiry_date=today + timedelta(days=3 + i * 4),
                    batch_number=f"SEED-{i + 1}",
                )
                received += 1

        self.stdout.write(
            self.style.SUCCESS(
                f"Seeded {len(product_objs)} products and {received} batches."
            )
        )
