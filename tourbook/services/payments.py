"""Checkout sessions with the payment provider.

Routes depend on :func:`get_payment_gateway`, so tests and local setups can swap
in a gateway that never talks to Stripe.
"""

import logging
from typing import Any, Protocol

import stripe

from tourbook.core import config
from tourbook.core.errors import Fatal
from tourbook.models.tour import Tour

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    def create_checkout_session(
        self,
        *,
        tour: Tour,
        customer_email: str,
        success_url: str,
        cancel_url: str,
    ) -> dict[str, Any]: ...


class StripeGateway:
    def __init__(self, secret_key: str, currency: str) -> None:
        self.secret_key = secret_key
        self.currency = currency

    def create_checkout_session(
        self,
        *,
        tour: Tour,
        customer_email: str,
        success_url: str,
        cancel_url: str,
    ) -> dict[str, Any]:
        if not self.secret_key:
            raise Fatal("Payments are not configured.")
        stripe.api_key = self.secret_key

        session = stripe.checkout.Session.create(
            mode="payment",
            payment_method_types=["card"],
            success_url=success_url,
            cancel_url=cancel_url,
            customer_email=customer_email,
            # Maps the completed payment back to the tour.
            client_reference_id=str(tour.id),
            line_items=[
                {
                    "price_data": {
                        "currency": self.currency,
                        "unit_amount": int(round(tour.price * 100)),
                        "product_data": {
                            "name": f"{tour.name} Tour",
                            "description": tour.summary,
                        },
                    },
                    "quantity": 1,
                }
            ],
        )
        logger.info("Created checkout session %s for tour %s", session.get("id"), tour.id)
        return {"id": session.get("id"), "url": session.get("url")}


def get_payment_gateway() -> PaymentGateway:
    return StripeGateway(config.STRIPE_SECRET_KEY, config.STRIPE_CURRENCY)
