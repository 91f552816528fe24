"""
models/payment.py — Payment table definition.

A Payment is proposed by its payer and only counts toward balances once
its receiver confirms it:

    pending  ──confirm (receiver only)──▶  verified   (terminal)

The transition rules live in services/payment_service.py; this module only
defines the row, its enums and the constraints the database can enforce.

Key design points:
  - `amount` uses Numeric(12, 2) — never Float.
  - CHECK(payer_id <> receiver_id) backs the SELF_PAYMENT (422) service check.
  - CHECK ties `verified_at` to `status`: a verified row always has a stamp,
    a pending row never does.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.app.extensions import db


# ── Enum Definitions ───────────────────────────────────────────────────────
# Imported by schemas and services; never repeat these as string literals.

class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    UPI  = "upi"


class PaymentStatus(str, enum.Enum):
    PENDING  = "pending"
    VERIFIED = "verified"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g. 'cash'), not names ('CASH')."""
    return [member.value for member in enum_cls]


# ── Model ──────────────────────────────────────────────────────────────────

class Payment(db.Model):
    __tablename__ = "payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "payer_id <> receiver_id",
            name="ck_payments_no_self_payment",
        ),
        CheckConstraint(
            "(status = 'verified') = (verified_at IS NOT NULL)",
            name="ck_payments_verified_stamp",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    payer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # The member who is owed money; the only one allowed to confirm.
    receiver_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    method: Mapped[PaymentMethod] = mapped_column(
        Enum(
            PaymentMethod,
            name="payment_method_enum",
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    note: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    status: Mapped[PaymentStatus] = mapped_column(
        Enum(
            PaymentStatus,
            name="payment_status_enum",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
        server_default=PaymentStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="payments",
    )

    payer: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[payer_id],
    )

    receiver: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[receiver_id],
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Payment id={self.id} "
            f"group_id={self.group_id} "
            f"from={self.payer_id} "
            f"to={self.receiver_id} "
            f"amount={self.amount} "
            f"status={self.status.value if self.status else None}>"
        )
