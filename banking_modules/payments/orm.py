"""
Payments ORM Models (``banking_modules.payments.orm``).

Responsibility
--------------
Minimal persistence for the payments collaborator: contacts, payments and
payment allocations.  Reconciliation reads these tables to find
unallocated payments and writes one payment through the
create-payment-from-transaction shortcut.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from banking_kernel.db.base import Base
from banking_modules.payments.models import Payment, PaymentType


class ContactModel(Base):
    """
    A customer or vendor that payments are made to or received from.

    Table: ``contacts``
    """

    __tablename__ = "contacts"

    tenant_id: Mapped[str] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(200))

    __table_args__ = (
        Index("idx_contacts_tenant_id", "tenant_id"),
    )


class PaymentModel(Base):
    """
    ORM model for ``Payment``.

    Table: ``payments``
    """

    __tablename__ = "payments"

    tenant_id: Mapped[str] = mapped_column(String(64))
    payment_number: Mapped[str] = mapped_column(String(32))
    payment_type: Mapped[str] = mapped_column(String(20))
    payment_date: Mapped[date]
    amount: Mapped[Decimal]
    currency: Mapped[str] = mapped_column(String(3))
    contact_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("contacts.id"), nullable=True,
    )
    reference: Mapped[str] = mapped_column(String(200), default="")
    notes: Mapped[str] = mapped_column(String(1000), default="")
    created_by: Mapped[str] = mapped_column(String(100), default="")
    created_at: Mapped[datetime | None]

    __table_args__ = (
        UniqueConstraint("tenant_id", "payment_number", name="uq_payments_tenant_number"),
        Index("idx_payments_tenant_type", "tenant_id", "payment_type"),
    )

    def to_dto(self) -> Payment:
        return Payment(
            id=self.id,
            tenant_id=self.tenant_id,
            payment_number=self.payment_number,
            payment_type=PaymentType(self.payment_type),
            payment_date=self.payment_date,
            amount=self.amount,
            currency=self.currency,
            reference=self.reference,
            notes=self.notes,
            contact_id=self.contact_id,
            created_by=self.created_by,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: Payment) -> "PaymentModel":
        return cls(
            id=dto.id,
            tenant_id=dto.tenant_id,
            payment_number=dto.payment_number,
            payment_type=dto.payment_type.value,
            payment_date=dto.payment_date,
            amount=dto.amount,
            currency=dto.currency,
            contact_id=dto.contact_id,
            reference=dto.reference,
            notes=dto.notes,
            created_by=dto.created_by,
            created_at=dto.created_at,
        )


class PaymentAllocationModel(Base):
    """
    Portion of a payment applied to an invoice.

    Table: ``payment_allocations``
    """

    __tablename__ = "payment_allocations"

    payment_id: Mapped[UUID] = mapped_column(ForeignKey("payments.id"))
    invoice_id: Mapped[UUID | None]
    amount: Mapped[Decimal]

    __table_args__ = (
        Index("idx_payment_allocations_payment_id", "payment_id"),
    )
