"""
Commerce application.

Products, carts and orders. Orders snapshot cart prices at creation and
commit stock only when their payment is confirmed, so abandoned payments
never hold inventory.

Usage:
    from commerce.services import OrderService
"""
