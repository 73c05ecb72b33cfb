"""
Factory Boy factories for shop models.

Orders are normally built through OrderService.create_from_cart; the
factories here cover the cases where a test needs an order in a given
state directly.

Usage:
    from commerce.tests.factories import OrderFactory, ProductFactory

    product = ProductFactory(stock=3)
    order = OrderFactory(user=user, items=[(product, 2)])
"""

import factory

from authentication.tests.factories import UserFactory
from commerce.models import Order, OrderItem, OrderStatus, Product, ProductStatus

SHIPPING_ADDRESS = {
    "name": "Sita Sharma",
    "line1": "Lazimpat 12",
    "city": "Kathmandu",
    "phone": "9800000000",
}


class ProductFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Product

    name = factory.Sequence(lambda n: f"Notebook {n}")
    sku = factory.Sequence(lambda n: f"SKU-{n:05d}")
    price_paisa = 50000
    stock = 10
    status = ProductStatus.ACTIVE


class OrderFactory(factory.django.DjangoModelFactory):
    """
    Pending order. Pass ``items=[(product, quantity), ...]`` to add lines;
    subtotal and total are computed from them.
    """

    class Meta:
        model = Order
        skip_postgeneration_save = True

    order_number = factory.Sequence(lambda n: f"ORD{n:016d}")
    user = factory.SubFactory(UserFactory)
    shipping_address = factory.LazyFunction(lambda: dict(SHIPPING_ADDRESS))
    status = OrderStatus.PENDING

    @factory.post_generation
    def items(self, create, extracted, **kwargs):
        if not create or not extracted:
            return
        subtotal = 0
        for product, quantity in extracted:
            OrderItem.objects.create(
                order=self,
                product=product,
                product_name=product.name,
                quantity=quantity,
                unit_price_paisa=product.price_paisa,
                total_paisa=product.price_paisa * quantity,
            )
            subtotal += product.price_paisa * quantity
        total = subtotal - self.discount_paisa + self.tax_paisa + self.shipping_paisa
        Order.objects.filter(pk=self.pk).update(subtotal_paisa=subtotal, total_paisa=total)
        self.subtotal_paisa = subtotal
        self.total_paisa = total
