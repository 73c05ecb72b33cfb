"""
Factory Boy factories for payment models.

Payment.status is a protected FSM field: it can be passed when the row
is created but never assigned afterwards, so each state has its own
trait instead of a post-creation transition.

Usage:
    from payments.tests.factories import PaymentFactory

    payment = PaymentFactory(payer=user)                   # pending eSewa course payment
    payment = PaymentFactory(completed=True, course=course)
    payment = PaymentFactory(failed=True, retry_count=3)
"""

import factory
from django.utils import timezone

from authentication.tests.factories import UserFactory
from learning.tests.factories import CourseFactory
from payments.models import Payment, WebhookEvent
from payments.state_machines import (
    GatewayName,
    PaymentMethod,
    PaymentStatus,
    WebhookEventStatus,
)


class PaymentFactory(factory.django.DjangoModelFactory):
    """
    Pending wallet (eSewa) payment for a course.

    Traits:
        completed: COMPLETED with completed_at set
        failed: FAILED with a failure reason
        bank_transfer: Mobile banking payment awaiting manual confirmation
    """

    class Meta:
        model = Payment

    payer = factory.SubFactory(UserFactory)
    course = factory.SubFactory(CourseFactory)
    order = None
    amount_paisa = 150000
    discount_paisa = 0
    final_amount_paisa = factory.LazyAttribute(lambda o: o.amount_paisa - o.discount_paisa)
    currency = "NPR"
    method = PaymentMethod.WALLET
    gateway = GatewayName.ESEWA
    status = PaymentStatus.PENDING
    transaction_id = factory.Sequence(lambda n: f"TXN{n:013d}")
    gateway_transaction_id = factory.LazyAttribute(lambda o: o.transaction_id)
    user_agent = "Mozilla/5.0 (X11; Linux x86_64) Firefox/128.0"
    ip_address = "203.0.113.10"

    class Params:
        completed = factory.Trait(
            status=PaymentStatus.COMPLETED,
            completed_at=factory.LazyFunction(timezone.now),
        )
        failed = factory.Trait(
            status=PaymentStatus.FAILED,
            failed_at=factory.LazyFunction(timezone.now),
            failure_reason="Gateway declined the payment",
        )
        bank_transfer = factory.Trait(
            method=PaymentMethod.MOBILE_BANKING,
            gateway=GatewayName.BANK_TRANSFER,
            gateway_transaction_id=factory.Sequence(lambda n: f"MB{n:013d}"),
        )


class WebhookEventFactory(factory.django.DjangoModelFactory):
    """Pending Stripe event; override gateway/event_type for other sources."""

    class Meta:
        model = WebhookEvent

    gateway = GatewayName.STRIPE
    event_id = factory.Sequence(lambda n: f"evt_test_{n:08d}")
    event_type = "payment_intent.succeeded"
    payload = factory.LazyAttribute(
        lambda o: {
            "id": o.event_id,
            "type": o.event_type,
            "data": {"object": {"id": "pi_test_123"}},
        }
    )
    status = WebhookEventStatus.PENDING
    retry_count = 0
