from decimal import Decimal

from django.core.management.base import BaseCommand

from registration.domain import Capacity, Money, Product, ProductType
from registration.services.dependencies import get_services

CATALOG = (
    Product(
        id="prod-3day",
        name="3-Day Workshop",
        product_type=ProductType.THREE_DAY,
        price=Money(Decimal("3000")),
        duration=3,
        max_capacity=Capacity(12),
    ),
    Product(
        id="prod-5day",
        name="5-Day Workshop",
        product_type=ProductType.FIVE_DAY,
        price=Money(Decimal("4500")),
        duration=5,
        max_capacity=Capacity(8),
    ),
    Product(
        id="prod-consulting",
        name="Consulting (2 hours)",
        product_type=ProductType.HOURLY_CONSULTING,
        price=Money(Decimal("400")),
        duration=2,
        max_capacity=Capacity(1),
    ),
)


class Command(BaseCommand):
    help = "Create or update the standard product catalog."

    def handle(self, *args, **options):
        admin = get_services().admin
        for product in CATALOG:
            admin.upsert_product(product)
            self.stdout.write(f"{product.id}: {product.name} at {product.price}")
