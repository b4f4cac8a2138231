"""
Payment intent lookup for freshly created or updated provider subscriptions.

The provider attaches the payment intent to the subscription's latest
invoice asynchronously, so the first lookups right after creation often come
back empty. The resolver polls with a fixed budget and then falls back to a
reference embedded on the subscription itself.
"""

from billing.core.config import settings, subscription_logger
from billing.core.exceptions.types import DependencyUnavailableException
from billing.core.services.payment.gateway import ProviderGateway
from billing.core.services.payment.types import (
    ProviderPaymentIntent,
    ProviderSubscription,
)
from billing.core.services.retry import CancellationToken, RetryPolicy, retry_until


def default_lookup_policy() -> RetryPolicy:
    """Fixed-delay policy used when polling for the payment intent."""
    return RetryPolicy(
        max_attempts=settings.SUBSCRIPTION_PAYMENT_LOOKUP_ATTEMPTS,
        base_delay=settings.SUBSCRIPTION_PAYMENT_LOOKUP_DELAY_SECONDS,
        multiplier=1.0,
        max_delay=settings.SUBSCRIPTION_PAYMENT_LOOKUP_DELAY_SECONDS,
        jitter=0.0,
    )


class PaymentConfirmationResolver:
    """Locates the payment intent a provider subscription is waiting on."""

    def __init__(
        self,
        gateway: ProviderGateway,
        policy: RetryPolicy | None = None,
    ):
        self.gateway = gateway
        self.policy = policy or default_lookup_policy()

    async def poll_invoice_payment_intent(
        self,
        subscription: ProviderSubscription,
        token: CancellationToken | None = None,
    ) -> ProviderPaymentIntent | None:
        """
        Poll the subscription's latest invoice until it carries a payment intent.

        Args:
            subscription: Provider subscription returned by create/update.
            token: Optional cancellation token; cancelling ends the wait early.

        Returns:
            The payment intent, or None if attempts ran out or the wait was
            interrupted.
        """
        latest_invoice = subscription.latest_invoice

        async def lookup(attempt: int) -> ProviderPaymentIntent | None:
            nonlocal latest_invoice
            if not latest_invoice:
                refreshed = await self.gateway.retrieve_subscription(subscription.id)
                latest_invoice = refreshed.latest_invoice
                if not latest_invoice:
                    return None

            invoice = await self.gateway.retrieve_invoice(latest_invoice)
            if not invoice.payment_intent:
                return None

            subscription_logger.info(
                f"Invoice {invoice.id} of subscription {subscription.id} carries "
                f"payment intent {invoice.payment_intent} (attempt {attempt})"
            )
            return await self.gateway.retrieve_payment_intent(invoice.payment_intent)

        return await retry_until(
            lookup,
            self.policy,
            token=token,
            retry_on=(DependencyUnavailableException,),
            logger=subscription_logger,
            description=f"Payment intent lookup for subscription {subscription.id}",
        )

    async def resolve(
        self,
        subscription: ProviderSubscription,
        token: CancellationToken | None = None,
    ) -> ProviderPaymentIntent:
        """
        Resolve the payment intent of a provider subscription.

        Args:
            subscription: Provider subscription returned by create/update.
            token: Optional cancellation token for the polling wait.

        Returns:
            The provider payment intent.

        Raises:
            DependencyUnavailableException: If neither the invoice nor the
                subscription metadata yields a payment intent.
        """
        payment_intent = await self.poll_invoice_payment_intent(subscription, token)
        if payment_intent is not None:
            return payment_intent

        embedded = subscription.embedded_payment_intent
        if embedded:
            subscription_logger.warning(
                f"Falling back to embedded payment intent {embedded} for "
                f"subscription {subscription.id}"
            )
            return await self.gateway.retrieve_payment_intent(embedded)

        subscription_logger.error(
            f"No payment intent found for subscription {subscription.id}"
        )
        raise DependencyUnavailableException(
            "Subscription creation did not complete properly.",
            details={"provider_subscription_ref": subscription.id},
        )


__all__ = [
    "PaymentConfirmationResolver",
    "default_lookup_policy",
]
