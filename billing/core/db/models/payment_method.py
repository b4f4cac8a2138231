from uuid import UUID

from sqlalchemy import Boolean, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from billing.core.db.models.base import BaseModel


class PaymentMethod(BaseModel):
    """Payment method an account has saved with the provider."""

    __tablename__ = "payment_methods"

    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    provider_payment_method_ref: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    is_default: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "account_id",
            "provider_payment_method_ref",
            name="uq_payment_methods_account_provider_ref",
        ),
    )
