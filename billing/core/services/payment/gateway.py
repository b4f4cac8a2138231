"""Billing provider abstraction.

The lifecycle service talks to the provider only through `ProviderGateway`.
Concrete gateways receive their credential at construction and keep it to
themselves; nothing here reads or writes process-wide SDK state.

`RetryingProviderGateway` wraps any gateway and retries transient failures
(`DependencyUnavailableException`) with bounded, jittered exponential backoff.
Definitive provider errors (`ProviderException`) are never retried.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, TypeVar
from uuid import uuid4

from billing.core.config import provider_logger, settings
from billing.core.enums import ProrationBehavior
from billing.core.exceptions.types import DependencyUnavailableException
from billing.core.services.payment.types import (
    ProviderCustomer,
    ProviderInvoice,
    ProviderPaymentIntent,
    ProviderRefund,
    ProviderSubscription,
)
from billing.core.services.retry import RetryPolicy

T = TypeVar("T")


class ProviderGateway(ABC):
    """Abstract base class for billing provider gateways.

    Implementations raise `DependencyUnavailableException` for transport
    failures, timeouts, rate limiting and provider-side 5xx errors, and
    `ProviderException` (or `PaymentDeclinedException`) for definitive
    business errors.
    """

    @abstractmethod
    async def ensure_customer(
        self, account_id: str, *, metadata: dict[str, Any] | None = None
    ) -> ProviderCustomer:
        """Return the provider customer for an account, creating it if missing."""
        pass  # pragma: no cover

    @abstractmethod
    async def update_customer_default_payment_method(
        self, customer_id: str, payment_method_id: str
    ) -> ProviderCustomer:
        """Attach a payment method and make it the customer's invoice default."""
        pass  # pragma: no cover

    @abstractmethod
    async def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        *,
        payment_behavior: str = "default_incomplete",
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> ProviderSubscription:
        """Create a subscription whose first payment is left for the client to complete."""
        pass  # pragma: no cover

    @abstractmethod
    async def update_subscription(
        self,
        subscription_id: str,
        *,
        new_price_id: str | None = None,
        proration_behavior: ProrationBehavior | None = None,
        cancel_at_period_end: bool | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> ProviderSubscription:
        """Change the price, cancellation flag or metadata of a subscription."""
        pass  # pragma: no cover

    @abstractmethod
    async def cancel_subscription(
        self,
        subscription_id: str,
        *,
        cancel_at_period_end: bool = False,
        prorate: bool = False,
    ) -> ProviderSubscription:
        """Cancel a subscription immediately or at the end of the period."""
        pass  # pragma: no cover

    @abstractmethod
    async def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        """Fetch a subscription."""
        pass  # pragma: no cover

    @abstractmethod
    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        customer_id: str,
        *,
        payment_method_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> ProviderPaymentIntent:
        """Create a payment intent for an amount in minor units."""
        pass  # pragma: no cover

    @abstractmethod
    async def retrieve_payment_intent(
        self, payment_intent_id: str
    ) -> ProviderPaymentIntent:
        """Fetch a payment intent."""
        pass  # pragma: no cover

    @abstractmethod
    async def retrieve_invoice(self, invoice_id: str) -> ProviderInvoice:
        """Fetch an invoice."""
        pass  # pragma: no cover

    @abstractmethod
    async def pay_invoice(
        self, invoice_id: str, *, payment_method_id: str | None = None
    ) -> ProviderInvoice:
        """Attempt to collect an open invoice."""
        pass  # pragma: no cover

    @abstractmethod
    async def mark_invoice_paid_out_of_band(self, invoice_id: str) -> ProviderInvoice:
        """Mark an invoice as paid without collecting through the provider."""
        pass  # pragma: no cover

    @abstractmethod
    async def finalize_invoice(self, invoice_id: str) -> ProviderInvoice:
        """Move a draft invoice to open."""
        pass  # pragma: no cover

    @abstractmethod
    async def create_refund(
        self,
        payment_intent_id: str,
        amount: int,
        *,
        idempotency_key: str | None = None,
    ) -> ProviderRefund:
        """Refund part or all of a payment intent (amount in minor units)."""
        pass  # pragma: no cover


class RetryingProviderGateway(ProviderGateway):
    """Gateway decorator that retries transient provider failures.

    Every call is attempted up to ``policy.max_attempts`` times. Creation
    calls get one idempotency key per logical call, reused across attempts,
    so a retried create cannot produce a second resource.
    """

    def __init__(
        self,
        inner: ProviderGateway,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._inner = inner
        self._policy = policy or RetryPolicy(
            max_attempts=settings.PROVIDER_MAX_ATTEMPTS,
            base_delay=settings.PROVIDER_BACKOFF_BASE_SECONDS,
            multiplier=2.0,
            max_delay=settings.PROVIDER_BACKOFF_MAX_SECONDS,
            jitter=settings.PROVIDER_BACKOFF_JITTER,
        )
        self._sleep = sleep

    async def _call(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """
        Run a provider call with bounded retries.

        Parameters
        ----------
            operation : str
                Name of the gateway operation, for logging.
            call : Callable[[], Awaitable[T]]
                Zero-argument coroutine factory performing the call.

        Returns
        -------
            T
                The result of the first successful attempt.

        Raises
        ------
            DependencyUnavailableException
                When every attempt failed transiently.
            ProviderException
                Immediately, on a definitive provider error.
        """
        max_attempts = self._policy.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                result = await call()
                provider_logger.info(
                    f"Provider {operation} succeeded (attempt {attempt}/{max_attempts})"
                )
                return result
            except DependencyUnavailableException as exc:
                if attempt >= max_attempts:
                    provider_logger.error(
                        f"Provider {operation} unavailable after {max_attempts} attempts: "
                        f"{exc.message}"
                    )
                    raise
                wait = self._policy.compute_delay(attempt)
                provider_logger.warning(
                    f"Provider {operation} unavailable; attempt {attempt}/{max_attempts}; "
                    f"wait={wait:.1f}s; error={exc.message}"
                )
                await self._sleep(wait)

        # Unreachable: the loop either returns or raises
        raise DependencyUnavailableException(
            f"Provider {operation} did not complete"
        )

    async def ensure_customer(
        self, account_id: str, *, metadata: dict[str, Any] | None = None
    ) -> ProviderCustomer:
        return await self._call(
            "ensure_customer",
            lambda: self._inner.ensure_customer(account_id, metadata=metadata),
        )

    async def update_customer_default_payment_method(
        self, customer_id: str, payment_method_id: str
    ) -> ProviderCustomer:
        return await self._call(
            "update_customer_default_payment_method",
            lambda: self._inner.update_customer_default_payment_method(
                customer_id, payment_method_id
            ),
        )

    async def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        *,
        payment_behavior: str = "default_incomplete",
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> ProviderSubscription:
        key = idempotency_key or str(uuid4())
        return await self._call(
            "create_subscription",
            lambda: self._inner.create_subscription(
                customer_id,
                price_id,
                payment_behavior=payment_behavior,
                metadata=metadata,
                idempotency_key=key,
            ),
        )

    async def update_subscription(
        self,
        subscription_id: str,
        *,
        new_price_id: str | None = None,
        proration_behavior: ProrationBehavior | None = None,
        cancel_at_period_end: bool | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> ProviderSubscription:
        key = idempotency_key or str(uuid4())
        return await self._call(
            "update_subscription",
            lambda: self._inner.update_subscription(
                subscription_id,
                new_price_id=new_price_id,
                proration_behavior=proration_behavior,
                cancel_at_period_end=cancel_at_period_end,
                metadata=metadata,
                idempotency_key=key,
            ),
        )

    async def cancel_subscription(
        self,
        subscription_id: str,
        *,
        cancel_at_period_end: bool = False,
        prorate: bool = False,
    ) -> ProviderSubscription:
        return await self._call(
            "cancel_subscription",
            lambda: self._inner.cancel_subscription(
                subscription_id,
                cancel_at_period_end=cancel_at_period_end,
                prorate=prorate,
            ),
        )

    async def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        return await self._call(
            "retrieve_subscription",
            lambda: self._inner.retrieve_subscription(subscription_id),
        )

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        customer_id: str,
        *,
        payment_method_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> ProviderPaymentIntent:
        key = idempotency_key or str(uuid4())
        return await self._call(
            "create_payment_intent",
            lambda: self._inner.create_payment_intent(
                amount,
                currency,
                customer_id,
                payment_method_id=payment_method_id,
                metadata=metadata,
                idempotency_key=key,
            ),
        )

    async def retrieve_payment_intent(
        self, payment_intent_id: str
    ) -> ProviderPaymentIntent:
        return await self._call(
            "retrieve_payment_intent",
            lambda: self._inner.retrieve_payment_intent(payment_intent_id),
        )

    async def retrieve_invoice(self, invoice_id: str) -> ProviderInvoice:
        return await self._call(
            "retrieve_invoice",
            lambda: self._inner.retrieve_invoice(invoice_id),
        )

    async def pay_invoice(
        self, invoice_id: str, *, payment_method_id: str | None = None
    ) -> ProviderInvoice:
        return await self._call(
            "pay_invoice",
            lambda: self._inner.pay_invoice(
                invoice_id, payment_method_id=payment_method_id
            ),
        )

    async def mark_invoice_paid_out_of_band(self, invoice_id: str) -> ProviderInvoice:
        return await self._call(
            "mark_invoice_paid_out_of_band",
            lambda: self._inner.mark_invoice_paid_out_of_band(invoice_id),
        )

    async def finalize_invoice(self, invoice_id: str) -> ProviderInvoice:
        return await self._call(
            "finalize_invoice",
            lambda: self._inner.finalize_invoice(invoice_id),
        )

    async def create_refund(
        self,
        payment_intent_id: str,
        amount: int,
        *,
        idempotency_key: str | None = None,
    ) -> ProviderRefund:
        key = idempotency_key or str(uuid4())
        return await self._call(
            "create_refund",
            lambda: self._inner.create_refund(
                payment_intent_id, amount, idempotency_key=key
            ),
        )


__all__ = [
    "ProviderGateway",
    "RetryingProviderGateway",
]
