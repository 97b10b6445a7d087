"""Payments collaborator: the slice of payment data reconciliation needs."""

from banking_modules.payments.models import Payment, PaymentType

__all__ = ["Payment", "PaymentType"]
