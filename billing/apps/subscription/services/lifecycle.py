"""
Subscription lifecycle service.

Drives an account's subscription through its states:

    free -> pending_payment -> active | incomplete
    active -> canceled_at_period_end -> active (reactivate)
    active -> canceled

Every transition runs its guards first, then calls the provider, then writes
the outcome to the local record in a single commit. Provider-side effects are
never rolled back when a later step fails; `sync_from_provider` reconciles a
local record that drifted from the provider.

Operations on the same account must be serialized by the caller: nothing
here takes a per-account lock.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from billing.apps.subscription.schemas import (
    ProrationCalculation,
    SubscriptionChangeResult,
)
from billing.apps.subscription.services.payment_confirmation import (
    PaymentConfirmationResolver,
)
from billing.apps.subscription.services.proration import ProrationCalculator
from billing.apps.subscription.services.validator import (
    SubscriptionNotFoundException,
    SubscriptionValidator,
)
from billing.core.config import settings, subscription_logger
from billing.core.db.crud import (
    PaymentIntentDB,
    PlanStore,
    SubscriptionDB,
    payment_intent_db,
    plan_db,
    subscription_db,
)
from billing.core.db.models import PaymentIntentRecord, Plan, SubscriptionRecord
from billing.core.enums import (
    PaymentIntentStatus,
    ProrationBehavior,
    SubscriptionChangeType,
    SubscriptionKind,
    SubscriptionStatus,
)
from billing.core.exceptions.types import (
    DependencyUnavailableException,
    InvalidArgumentException,
    NotFoundException,
    ProviderException,
)
from billing.core.services.audit import (
    AuditSink,
    SubscriptionChangeEvent,
    get_audit_sink,
    record_change,
)
from billing.core.services.payment.gateway import (
    ProviderGateway,
    RetryingProviderGateway,
)
from billing.core.services.payment.types import (
    ProviderPaymentIntent,
    ProviderSubscription,
)
from billing.core.utils import (
    ensure_utc,
    from_minor_units,
    resolve_next_billing_date,
    to_minor_units,
)


class PaymentIntentNotFoundException(NotFoundException):
    """Raised when no local mirror exists for a provider payment intent."""

    def __init__(self, message: str = "Payment intent not found."):
        super().__init__(message)


# Provider subscription statuses mapped onto local statuses
PROVIDER_STATUS_MAP: dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "incomplete": SubscriptionStatus.INCOMPLETE,
    "past_due": SubscriptionStatus.INCOMPLETE,
    "unpaid": SubscriptionStatus.INCOMPLETE,
    "paused": SubscriptionStatus.INCOMPLETE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}

_REMEDIATION_ERRORS = (ProviderException, DependencyUnavailableException)


def status_updates(status: SubscriptionStatus) -> dict[str, Any]:
    """Column updates for a status change; `active` always follows `status`."""
    return {"status": status, "active": status == SubscriptionStatus.ACTIVE}


def map_provider_status(provider_subscription: ProviderSubscription) -> SubscriptionStatus:
    """
    Map a provider subscription onto a local status.

    Args:
        provider_subscription: Subscription as reported by the provider.

    Returns:
        The local status. Unknown provider statuses map to INCOMPLETE.
    """
    status = PROVIDER_STATUS_MAP.get(provider_subscription.status)
    if status is None:
        subscription_logger.warning(
            f"Unknown provider status '{provider_subscription.status}' for "
            f"subscription {provider_subscription.id}; treating as incomplete"
        )
        return SubscriptionStatus.INCOMPLETE
    if status == SubscriptionStatus.ACTIVE and provider_subscription.cancel_at_period_end:
        return SubscriptionStatus.CANCELED_AT_PERIOD_END
    return status


def compute_refund(
    amount: Decimal,
    created_at: datetime,
    next_billing_date: datetime | None,
    now: datetime,
) -> Decimal:
    """
    Refund for the unused part of the current period.

    Args:
        amount: Amount paid for the period.
        created_at: Start of the paid period (record creation).
        next_billing_date: End of the paid period.
        now: Cancellation time.

    Returns:
        ``amount * remaining / total`` seconds, rounded to cents, or 0 when
        there is no billing date, the period is over, or it has no length.
    """
    next_billing_date = ensure_utc(next_billing_date)
    created_at = ensure_utc(created_at)  # type: ignore[assignment]
    if next_billing_date is None or now >= next_billing_date:
        return Decimal("0.00")

    total_seconds = Decimal(str((next_billing_date - created_at).total_seconds()))
    if total_seconds <= 0:
        return Decimal("0.00")

    remaining_seconds = Decimal(str((next_billing_date - now).total_seconds()))
    refund = Decimal(amount) * remaining_seconds / total_seconds
    return refund.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def free_subscription_ref(account_id: UUID) -> str:
    """Handle stored as provider_subscription_ref on free records."""
    return f"{settings.SUBSCRIPTION_FREE_REF_PREFIX}{account_id}"


class SubscriptionLifecycleService:
    """Orchestrates subscription transitions against the billing provider."""

    def __init__(
        self,
        gateway: ProviderGateway,
        *,
        validator: SubscriptionValidator | None = None,
        proration: ProrationCalculator | None = None,
        resolver: PaymentConfirmationResolver | None = None,
        audit_sink: AuditSink | None = None,
        subscriptions: SubscriptionDB = subscription_db,
        payment_intents: PaymentIntentDB = payment_intent_db,
        plans: PlanStore = plan_db,
    ):
        self.gateway = gateway
        self.validator = validator or SubscriptionValidator()
        self.proration = proration or ProrationCalculator()
        self.resolver = resolver or PaymentConfirmationResolver(gateway)
        self.subscriptions = subscriptions
        self.payment_intents = payment_intents
        self.plans = plans
        self._audit_sink = audit_sink

    @property
    def audit_sink(self) -> AuditSink:
        return self._audit_sink or get_audit_sink()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _next_billing_date(provider_subscription: ProviderSubscription) -> datetime:
        return resolve_next_billing_date(
            provider_subscription.current_period_end,
            settings.SUBSCRIPTION_FALLBACK_BILLING_DAYS,
        )

    @staticmethod
    def _days_remaining(record: SubscriptionRecord, now: datetime) -> int:
        next_billing_date = ensure_utc(record.next_billing_date)
        if record.is_free or next_billing_date is None:
            return 0
        return max(0, (next_billing_date - now).days)

    @staticmethod
    async def _finish(session: AsyncSession, commit_self: bool) -> None:
        if commit_self:
            await session.commit()
        else:
            await session.flush()

    async def _get_plan(self, session: AsyncSession, plan_id: str) -> Plan:
        plan = await self.plans.get_by_id(session, plan_id)
        return self.validator.plan_exists(plan, plan_id)

    async def _apply(
        self,
        session: AsyncSession,
        record: SubscriptionRecord,
        updates: dict[str, Any],
    ) -> SubscriptionRecord:
        updated = await self.subscriptions.update(
            session, record.id, updates, commit_self=False
        )
        if updated is None:
            raise SubscriptionNotFoundException()
        return updated

    async def _record_change(
        self,
        record: SubscriptionRecord,
        change_type: SubscriptionChangeType,
        *,
        from_plan_id: str | None = None,
        to_plan_id: str | None = None,
        proration_amount: Decimal | None = None,
    ) -> None:
        await record_change(
            self.audit_sink,
            SubscriptionChangeEvent(
                account_id=record.account_id,
                change_type=change_type,
                from_plan_id=from_plan_id,
                to_plan_id=to_plan_id or record.plan_id,
                proration_amount=proration_amount,
                provider_subscription_ref=record.provider_subscription_ref,
            ),
        )

    @staticmethod
    def _purchasable_price(plan: Plan) -> str:
        if not plan.provider_price_ref:
            raise InvalidArgumentException(
                f"Plan {plan.id} has no provider price and cannot be purchased."
            )
        return plan.provider_price_ref

    async def _save_payment_intent(
        self,
        session: AsyncSession,
        account_id: UUID,
        payment_intent: ProviderPaymentIntent,
        provider_subscription: ProviderSubscription,
        plan: Plan,
    ) -> PaymentIntentRecord:
        data = {
            "account_id": account_id,
            "provider_payment_intent_ref": payment_intent.id,
            "provider_subscription_ref": provider_subscription.id,
            "amount": from_minor_units(payment_intent.amount),
            "currency": payment_intent.currency.upper(),
            "status": payment_intent.status,
            "payment_method_ref": payment_intent.payment_method,
            "client_secret": payment_intent.client_secret,
            "provider_customer_ref": payment_intent.customer
            or provider_subscription.customer,
            "requires_action": payment_intent.requires_action,
            "intent_metadata": {
                "plan_id": plan.id,
                "provider_subscription_ref": provider_subscription.id,
            },
        }
        existing = await self.payment_intents.get_by_provider_ref(
            session, payment_intent.id
        )
        if existing:
            updated = await self.payment_intents.update(
                session, existing.id, data, commit_self=False
            )
            return updated or existing
        return await self.payment_intents.create(session, data, commit_self=False)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_subscription(
        self,
        session: AsyncSession,
        account_id: UUID,
    ) -> SubscriptionRecord:
        """
        Get the subscription record of an account.

        Args:
            session: Database session.
            account_id: Account ID.

        Returns:
            The subscription record.

        Raises:
            SubscriptionNotFoundException: If the account has no record.
        """
        record = await self.subscriptions.get_by_account(session, account_id)
        return self.validator.exists(record)

    async def preview_proration(
        self,
        session: AsyncSession,
        account_id: UUID,
        plan_id: str,
    ) -> ProrationCalculation:
        """
        Preview the proration of switching an account to another plan.

        Args:
            session: Database session.
            account_id: Account ID.
            plan_id: Target plan ID.

        Returns:
            ProrationCalculation for the switch, using the days left until the
            next billing date (0 for free records).
        """
        self.validator.plan_id_well_formed(plan_id)
        record = self.validator.exists(
            await self.subscriptions.get_by_account(session, account_id)
        )
        new_plan = await self._get_plan(session, plan_id)
        current_plan = await self._get_plan(session, record.plan_id)
        days_remaining = self._days_remaining(record, self._now())
        return self.proration.calculate_for_plans(current_plan, new_plan, days_remaining)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def create_free_subscription(
        self,
        session: AsyncSession,
        account_id: UUID,
        plan_id: str | None = None,
        commit_self: bool = True,
    ) -> SubscriptionRecord:
        """
        Provision the free subscription of an account.

        No provider call is made. Calling this again for the same account
        replaces the existing free record instead of adding a second one.

        Args:
            session: Database session.
            account_id: Account ID.
            plan_id: Free plan ID. Defaults to settings.SUBSCRIPTION_FREE_PLAN_ID.
            commit_self: Whether to commit the transaction.

        Returns:
            The new free subscription record.

        Raises:
            InvalidArgumentException: If the plan id is malformed.
            PlanNotFoundException: If the plan does not exist.
            InvalidStateException: If the account already has a paid subscription.
        """
        plan_id = plan_id or settings.SUBSCRIPTION_FREE_PLAN_ID
        self.validator.plan_id_well_formed(plan_id)
        plan = await self._get_plan(session, plan_id)

        existing = await self.subscriptions.get_by_account(session, account_id)
        if existing:
            self.validator.replaceable_by_free(existing)
            await self.subscriptions.delete_by_account(
                session, account_id, commit_self=False
            )
            subscription_logger.debug(
                f"Replacing free subscription for account {account_id}"
            )

        now = self._now()
        record = await self.subscriptions.create(
            session,
            {
                "account_id": account_id,
                "plan_id": plan.id,
                "kind": SubscriptionKind.FREE,
                "provider_subscription_ref": free_subscription_ref(account_id),
                "provider_customer_ref": free_subscription_ref(account_id),
                **status_updates(SubscriptionStatus.FREE),
                "cancel_at_period_end": False,
                "subscription_start_date": now,
                "next_billing_date": None,
                "subscription_end_date": None,
                "last_payment_date": None,
                "pending_plan_change": False,
            },
            commit_self=False,
        )
        await self._finish(session, commit_self)

        subscription_logger.info(
            f"Free subscription created for account {account_id} on plan {plan.id}"
        )
        await self._record_change(record, SubscriptionChangeType.CREATE_FREE)
        return record

    async def upgrade(
        self,
        session: AsyncSession,
        account_id: UUID,
        plan_id: str,
        payment_method_id: str | None = None,
        return_url: str | None = None,
        commit_self: bool = True,
    ) -> SubscriptionChangeResult:
        """
        Move an account to a more expensive plan.

        A free (or fully canceled) account gets a new provider customer and
        subscription with deferred payment; its local record is replaced. A
        paid account has its provider subscription repriced and invoiced
        immediately. Either way the record waits in pending_payment until
        `confirm_payment` runs.

        Args:
            session: Database session.
            account_id: Account ID.
            plan_id: Target plan ID.
            payment_method_id: Optional saved payment method to charge.
            return_url: Optional URL the client returns to after authentication.
            commit_self: Whether to commit the transaction.

        Returns:
            SubscriptionChangeResult with the record and the client secret
            needed to complete the payment.

        Raises:
            SubscriptionNotFoundException: If the account has no record.
            PlanNotFoundException: If either plan does not exist.
            InvalidArgumentException: If the new plan is not more expensive.
            PaymentMethodNotFoundException: If the payment method is not the account's.
            DependencyUnavailableException: If the provider is unavailable or the
                payment intent cannot be located.
        """
        self.validator.plan_id_well_formed(plan_id)
        record = self.validator.exists(
            await self.subscriptions.get_by_account(session, account_id)
        )
        new_plan = await self._get_plan(session, plan_id)
        current_plan = await self._get_plan(session, record.plan_id)
        self.validator.is_upgrade(current_plan, new_plan)
        await self.validator.payment_method_belongs_to_account(
            session, payment_method_id, account_id
        )
        price_ref = self._purchasable_price(new_plan)

        now = self._now()
        proration = self.proration.calculate_for_plans(
            current_plan, new_plan, self._days_remaining(record, now)
        )
        metadata: dict[str, Any] = {
            "account_id": str(account_id),
            "plan_id": new_plan.id,
            "upgrade_from": current_plan.id,
        }
        if return_url:
            metadata["return_url"] = return_url

        if record.is_free or record.status == SubscriptionStatus.CANCELED:
            customer = await self.gateway.ensure_customer(
                str(account_id), metadata={"account_id": str(account_id)}
            )
            if payment_method_id:
                await self.gateway.update_customer_default_payment_method(
                    customer.id, payment_method_id
                )
            provider_subscription = await self.gateway.create_subscription(
                customer.id,
                price_ref,
                payment_behavior="default_incomplete",
                metadata=metadata,
            )
            subscription_logger.info(
                f"Provider subscription {provider_subscription.id} created for "
                f"account {account_id} on plan {new_plan.id}"
            )
            payment_intent = await self.resolver.resolve(provider_subscription)

            # One record per account: the free record is replaced, not kept
            await self.subscriptions.delete_by_account(
                session, account_id, commit_self=False
            )
            record = await self.subscriptions.create(
                session,
                {
                    "account_id": account_id,
                    "plan_id": new_plan.id,
                    "kind": SubscriptionKind.PROVISIONED,
                    "provider_subscription_ref": provider_subscription.id,
                    "provider_customer_ref": customer.id,
                    **status_updates(SubscriptionStatus.PENDING_PAYMENT),
                    "cancel_at_period_end": False,
                    "subscription_start_date": now,
                    "next_billing_date": None,
                    "subscription_end_date": None,
                    "last_payment_date": now,
                    "pending_plan_change": False,
                },
                commit_self=False,
            )
        else:
            if payment_method_id:
                await self.gateway.update_customer_default_payment_method(
                    record.provider_customer_ref, payment_method_id
                )
            provider_subscription = await self.gateway.update_subscription(
                record.provider_subscription_ref,
                new_price_id=price_ref,
                proration_behavior=ProrationBehavior.ALWAYS_INVOICE,
                metadata=metadata,
            )
            subscription_logger.info(
                f"Provider subscription {provider_subscription.id} repriced to plan "
                f"{new_plan.id} for account {account_id}"
            )
            payment_intent = await self.resolver.resolve(provider_subscription)
            record = await self._apply(
                session,
                record,
                {
                    "plan_id": new_plan.id,
                    **status_updates(SubscriptionStatus.PENDING_PAYMENT),
                    "last_payment_date": now,
                    "next_billing_date": self._next_billing_date(provider_subscription),
                    "pending_plan_change": False,
                },
            )

        intent_record = await self._save_payment_intent(
            session, account_id, payment_intent, provider_subscription, new_plan
        )
        await self._finish(session, commit_self)

        subscription_logger.info(
            f"Upgrade of account {account_id} to {new_plan.id} awaiting payment "
            f"{payment_intent.id} ({payment_intent.status})"
        )
        await self._record_change(
            record,
            SubscriptionChangeType.UPGRADE,
            from_plan_id=current_plan.id,
            to_plan_id=new_plan.id,
            proration_amount=proration.proration_amount,
        )
        return SubscriptionChangeResult(
            subscription=record,
            client_secret=payment_intent.client_secret,
            payment_intent=intent_record,
        )

    async def _remediate_invoice(
        self,
        record: SubscriptionRecord,
        payment_intent: ProviderPaymentIntent,
    ) -> datetime | None:
        """
        Settle the latest invoice after a successful payment.

        Each step is attempted once; failures are logged and the remaining
        steps still run where they make sense.

        Returns:
            The provider period end, if the subscription could be fetched.
        """
        ref = record.provider_subscription_ref
        try:
            provider_subscription = await self.gateway.retrieve_subscription(ref)
        except _REMEDIATION_ERRORS as e:
            subscription_logger.warning(
                f"Remediation: could not fetch subscription {ref}: {e}"
            )
            return None

        period_end = provider_subscription.current_period_end
        invoice_id = provider_subscription.latest_invoice
        if not invoice_id:
            return period_end

        try:
            invoice = await self.gateway.retrieve_invoice(invoice_id)
        except _REMEDIATION_ERRORS as e:
            subscription_logger.warning(
                f"Remediation: could not fetch invoice {invoice_id} of {ref}: {e}"
            )
            return period_end

        if invoice.status == "draft":
            try:
                invoice = await self.gateway.finalize_invoice(invoice.id)
                subscription_logger.info(f"Remediation: finalized invoice {invoice.id}")
            except _REMEDIATION_ERRORS as e:
                subscription_logger.warning(
                    f"Remediation: could not finalize invoice {invoice.id}: {e}"
                )
                return period_end

        if invoice.status == "open":
            try:
                await self.gateway.pay_invoice(
                    invoice.id, payment_method_id=payment_intent.payment_method
                )
                subscription_logger.info(f"Remediation: paid invoice {invoice.id}")
            except _REMEDIATION_ERRORS as e:
                subscription_logger.warning(
                    f"Remediation: could not pay invoice {invoice.id}: {e}"
                )
                try:
                    await self.gateway.mark_invoice_paid_out_of_band(invoice.id)
                    subscription_logger.info(
                        f"Remediation: marked invoice {invoice.id} paid out of band"
                    )
                except _REMEDIATION_ERRORS as e:
                    subscription_logger.warning(
                        f"Remediation: could not mark invoice {invoice.id} "
                        f"paid out of band: {e}"
                    )

        return period_end

    async def confirm_payment(
        self,
        session: AsyncSession,
        provider_subscription_ref: str,
        provider_payment_intent_ref: str,
        commit_self: bool = True,
    ) -> SubscriptionRecord:
        """
        Apply the provider's verdict on a pending payment.

        Args:
            session: Database session.
            provider_subscription_ref: Provider subscription reference.
            provider_payment_intent_ref: Provider payment intent reference.
            commit_self: Whether to commit the transaction.

        Returns:
            The updated subscription record: active when the payment
            succeeded, incomplete otherwise.

        Raises:
            SubscriptionNotFoundException: If no record has this reference.
            PaymentIntentNotFoundException: If the intent was never recorded.
        """
        record = self.validator.exists(
            await self.subscriptions.get_by_provider_ref(
                session, provider_subscription_ref
            )
        )
        intent_record = await self.payment_intents.get_by_provider_ref(
            session, provider_payment_intent_ref
        )
        if intent_record is None:
            raise PaymentIntentNotFoundException()

        payment_intent = await self.gateway.retrieve_payment_intent(
            provider_payment_intent_ref
        )
        await self.payment_intents.update(
            session,
            intent_record.id,
            {
                "status": payment_intent.status,
                "payment_method_ref": payment_intent.payment_method
                or intent_record.payment_method_ref,
                "requires_action": payment_intent.requires_action,
            },
            commit_self=False,
        )

        now = self._now()
        if payment_intent.status == PaymentIntentStatus.SUCCEEDED.value:
            record = await self._apply(
                session,
                record,
                {
                    **status_updates(SubscriptionStatus.ACTIVE),
                    "last_payment_date": now,
                    "cancel_at_period_end": False,
                    "subscription_end_date": None,
                    "pending_plan_change": False,
                },
            )
            period_end = await self._remediate_invoice(record, payment_intent)
            record = await self._apply(
                session,
                record,
                {
                    "next_billing_date": resolve_next_billing_date(
                        period_end, settings.SUBSCRIPTION_FALLBACK_BILLING_DAYS, now
                    )
                },
            )
            change_type = SubscriptionChangeType.PAYMENT_CONFIRMED
            subscription_logger.info(
                f"Payment {payment_intent.id} succeeded; subscription "
                f"{provider_subscription_ref} is active"
            )
        elif payment_intent.status in (
            PaymentIntentStatus.PROCESSING.value,
            PaymentIntentStatus.REQUIRES_ACTION.value,
        ):
            record = await self._apply(
                session, record, status_updates(SubscriptionStatus.INCOMPLETE)
            )
            change_type = SubscriptionChangeType.PAYMENT_PENDING
            subscription_logger.info(
                f"Payment {payment_intent.id} is {payment_intent.status}; subscription "
                f"{provider_subscription_ref} stays incomplete"
            )
        else:
            record = await self._apply(
                session, record, status_updates(SubscriptionStatus.INCOMPLETE)
            )
            change_type = SubscriptionChangeType.PAYMENT_FAILED
            subscription_logger.error(
                f"Payment {payment_intent.id} failed with status {payment_intent.status} "
                f"for subscription {provider_subscription_ref}"
            )

        await self._finish(session, commit_self)
        await self._record_change(record, change_type)
        return record

    async def downgrade(
        self,
        session: AsyncSession,
        account_id: UUID,
        plan_id: str,
        commit_self: bool = True,
    ) -> SubscriptionRecord:
        """
        Move a paid account to a cheaper plan.

        The provider credits the unused time on the next invoice, so no
        payment is collected here.

        Args:
            session: Database session.
            account_id: Account ID.
            plan_id: Target plan ID.
            commit_self: Whether to commit the transaction.

        Returns:
            The updated subscription record.

        Raises:
            SubscriptionNotFoundException: If the account has no record.
            InvalidStateException: If the record is the free placeholder.
            PlanNotFoundException: If either plan does not exist.
            InvalidArgumentException: If the new plan is not cheaper.
        """
        self.validator.plan_id_well_formed(plan_id)
        record = self.validator.exists(
            await self.subscriptions.get_by_account(session, account_id)
        )
        self.validator.not_free_placeholder(record, "downgrade")
        new_plan = await self._get_plan(session, plan_id)
        current_plan = await self._get_plan(session, record.plan_id)
        self.validator.is_downgrade(current_plan, new_plan)
        price_ref = self._purchasable_price(new_plan)

        proration = self.proration.calculate_for_plans(
            current_plan, new_plan, self._days_remaining(record, self._now())
        )
        provider_subscription = await self.gateway.update_subscription(
            record.provider_subscription_ref,
            new_price_id=price_ref,
            proration_behavior=ProrationBehavior.CREATE_PRORATIONS,
            metadata={
                "account_id": str(account_id),
                "plan_id": new_plan.id,
                "downgrade_from": current_plan.id,
            },
        )
        record = await self._apply(
            session,
            record,
            {
                "plan_id": new_plan.id,
                **status_updates(map_provider_status(provider_subscription)),
                "cancel_at_period_end": provider_subscription.cancel_at_period_end,
                "next_billing_date": self._next_billing_date(provider_subscription),
                "pending_plan_change": True,
            },
        )
        await self._finish(session, commit_self)

        subscription_logger.info(
            f"Account {account_id} downgraded from {current_plan.id} to {new_plan.id}"
        )
        await self._record_change(
            record,
            SubscriptionChangeType.DOWNGRADE,
            from_plan_id=current_plan.id,
            to_plan_id=new_plan.id,
            proration_amount=proration.proration_amount,
        )
        return record

    async def _issue_refund(
        self,
        session: AsyncSession,
        record: SubscriptionRecord,
        now: datetime,
    ) -> Decimal:
        latest = await self.payment_intents.get_latest_for_subscription(
            session, record.provider_subscription_ref
        )
        if latest is None:
            subscription_logger.info(
                f"No recorded payment for {record.provider_subscription_ref}; no refund"
            )
            return Decimal("0.00")

        refund = compute_refund(
            latest.amount, record.created_at, record.next_billing_date, now
        )
        if refund <= 0:
            subscription_logger.info(
                f"Nothing to refund for {record.provider_subscription_ref}"
            )
            return refund

        await self.gateway.create_refund(
            latest.provider_payment_intent_ref,
            to_minor_units(refund),
            idempotency_key=(
                f"refund-{record.provider_subscription_ref}-"
                f"{latest.provider_payment_intent_ref}"
            ),
        )
        subscription_logger.info(
            f"Refunded {refund} {latest.currency} of payment "
            f"{latest.provider_payment_intent_ref} for {record.provider_subscription_ref}"
        )
        return refund

    async def cancel(
        self,
        session: AsyncSession,
        account_id: UUID,
        immediate: bool = False,
        commit_self: bool = True,
    ) -> SubscriptionRecord:
        """
        Cancel a paid subscription.

        Args:
            session: Database session.
            account_id: Account ID.
            immediate: If True, cancel now and refund the unused time.
                Otherwise cancel at the end of the current period.
            commit_self: Whether to commit the transaction.

        Returns:
            The updated subscription record.

        Raises:
            SubscriptionNotFoundException: If the account has no record.
            InvalidStateException: If the record is free or not active. A
                record set to cancel at period end may still be canceled
                immediately while its access lasts.
        """
        record = self.validator.exists(
            await self.subscriptions.get_by_account(session, account_id)
        )
        self.validator.not_free_placeholder(record, "cancel")
        self.validator.can_cancel(record, immediate)

        now = self._now()
        if immediate:
            await self.gateway.cancel_subscription(
                record.provider_subscription_ref,
                cancel_at_period_end=False,
                prorate=True,
            )
            refund = await self._issue_refund(session, record, now)
            updates: dict[str, Any] = {
                **status_updates(SubscriptionStatus.CANCELED),
                "cancel_at_period_end": False,
                "subscription_end_date": now,
                "pending_plan_change": False,
            }
            change_type = SubscriptionChangeType.CANCEL_IMMEDIATE
            subscription_logger.info(
                f"Subscription {record.provider_subscription_ref} canceled immediately "
                f"(refund {refund})"
            )
        else:
            provider_subscription = await self.gateway.cancel_subscription(
                record.provider_subscription_ref,
                cancel_at_period_end=True,
            )
            updates = {
                **status_updates(SubscriptionStatus.CANCELED_AT_PERIOD_END),
                "cancel_at_period_end": True,
                "subscription_end_date": self._next_billing_date(provider_subscription),
            }
            change_type = SubscriptionChangeType.CANCEL
            subscription_logger.info(
                f"Subscription {record.provider_subscription_ref} set to cancel at "
                f"period end"
            )

        record = await self._apply(session, record, updates)
        await self._finish(session, commit_self)
        await self._record_change(record, change_type)
        return record

    async def reactivate(
        self,
        session: AsyncSession,
        provider_subscription_ref: str,
        commit_self: bool = True,
    ) -> SubscriptionRecord:
        """
        Undo a pending cancellation.

        Args:
            session: Database session.
            provider_subscription_ref: Provider subscription reference.
            commit_self: Whether to commit the transaction.

        Returns:
            The updated subscription record.

        Raises:
            SubscriptionNotFoundException: If no record has this reference.
            InvalidStateException: If the record is free, fully canceled, or
                already active and not set to cancel.
        """
        record = self.validator.exists(
            await self.subscriptions.get_by_provider_ref(
                session, provider_subscription_ref
            )
        )
        self.validator.not_free_placeholder(record, "reactivate")
        self.validator.can_reactivate(record)

        provider_subscription = await self.gateway.update_subscription(
            provider_subscription_ref,
            cancel_at_period_end=False,
            metadata={"reactivated_at": self._now().isoformat()},
        )
        record = await self._apply(
            session,
            record,
            {
                **status_updates(map_provider_status(provider_subscription)),
                "cancel_at_period_end": False,
                "subscription_end_date": None,
                "next_billing_date": self._next_billing_date(provider_subscription),
            },
        )
        await self._finish(session, commit_self)

        subscription_logger.info(
            f"Subscription {provider_subscription_ref} reactivated ({record.status.value})"
        )
        await self._record_change(record, SubscriptionChangeType.REACTIVATE)
        return record

    async def sync_from_provider(
        self,
        session: AsyncSession,
        provider_subscription_ref: str,
        commit_self: bool = True,
    ) -> SubscriptionRecord:
        """
        Overwrite the local status with what the provider reports.

        Args:
            session: Database session.
            provider_subscription_ref: Provider subscription reference.
            commit_self: Whether to commit the transaction.

        Returns:
            The reconciled subscription record.

        Raises:
            SubscriptionNotFoundException: If no record has this reference.
            InvalidStateException: If the record is the free placeholder.
        """
        record = self.validator.exists(
            await self.subscriptions.get_by_provider_ref(
                session, provider_subscription_ref
            )
        )
        self.validator.not_free_placeholder(record, "sync")

        provider_subscription = await self.gateway.retrieve_subscription(
            provider_subscription_ref
        )
        previous_status = record.status
        status = map_provider_status(provider_subscription)
        updates: dict[str, Any] = {
            **status_updates(status),
            "cancel_at_period_end": provider_subscription.cancel_at_period_end,
        }
        if provider_subscription.current_period_end is not None:
            updates["next_billing_date"] = provider_subscription.current_period_end

        # The end date drives is_entitled once the record stops being active
        if status == SubscriptionStatus.CANCELED_AT_PERIOD_END:
            updates["subscription_end_date"] = self._next_billing_date(
                provider_subscription
            )
        elif status == SubscriptionStatus.CANCELED:
            if record.subscription_end_date is None:
                updates["subscription_end_date"] = self._now()
        elif status == SubscriptionStatus.ACTIVE:
            updates["subscription_end_date"] = None

        record = await self._apply(session, record, updates)
        await self._finish(session, commit_self)

        if previous_status != record.status:
            subscription_logger.warning(
                f"Subscription {provider_subscription_ref} drifted: "
                f"{previous_status.value} -> {record.status.value}"
            )
        await self._record_change(record, SubscriptionChangeType.SYNC)
        return record

    async def update_payment_method(
        self,
        session: AsyncSession,
        account_id: UUID,
        payment_method_id: str,
    ) -> SubscriptionRecord:
        """
        Make a saved payment method the default for future invoices.

        Args:
            session: Database session.
            account_id: Account ID.
            payment_method_id: Provider payment method reference.

        Returns:
            The (unchanged) subscription record.

        Raises:
            SubscriptionNotFoundException: If the account has no record.
            InvalidStateException: If the record is free or set to cancel.
            PaymentMethodNotFoundException: If the method is not the account's.
        """
        record = self.validator.exists(
            await self.subscriptions.get_by_account(session, account_id)
        )
        self.validator.not_free_placeholder(record, "update the payment method of")
        self.validator.not_pending_cancel(record, "update the payment method of")
        if not payment_method_id:
            raise InvalidArgumentException("A payment method is required.")
        await self.validator.payment_method_belongs_to_account(
            session, payment_method_id, account_id
        )

        await self.gateway.update_customer_default_payment_method(
            record.provider_customer_ref, payment_method_id
        )
        subscription_logger.info(
            f"Default payment method updated for account {account_id}"
        )
        await self._record_change(record, SubscriptionChangeType.PAYMENT_METHOD_UPDATED)
        return record


def build_lifecycle_service(
    gateway: ProviderGateway, **collaborators: Any
) -> SubscriptionLifecycleService:
    """
    Build a lifecycle service whose provider calls are retried on transient failures.

    Args:
        gateway: Concrete provider gateway carrying its own credential.
        **collaborators: Overrides passed to SubscriptionLifecycleService.

    Returns:
        SubscriptionLifecycleService.
    """
    if not isinstance(gateway, RetryingProviderGateway):
        gateway = RetryingProviderGateway(gateway)
    return SubscriptionLifecycleService(gateway, **collaborators)


__all__ = [
    "PROVIDER_STATUS_MAP",
    "PaymentIntentNotFoundException",
    "SubscriptionLifecycleService",
    "build_lifecycle_service",
    "compute_refund",
    "free_subscription_ref",
    "map_provider_status",
    "status_updates",
]
