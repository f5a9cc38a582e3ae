"""ORM models exposed for easy imports."""

from .client import Client, PaymentMethod
from .contractor import Contractor, ContractorRate
from .invoice import BatchInvoice, Invoice, InvoiceStatus, InvoiceType, SessionInvoice
from .line_item import InvoiceLineItem
from .organization import Organization
from .service_type import ServiceType
from .session import BILLABLE_STATUSES, SessionAttendee, SessionStatus, TherapySession

__all__ = [
    "BILLABLE_STATUSES",
    "BatchInvoice",
    "Client",
    "Contractor",
    "ContractorRate",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "InvoiceType",
    "Organization",
    "PaymentMethod",
    "ServiceType",
    "SessionAttendee",
    "SessionInvoice",
    "SessionStatus",
    "TherapySession",
]
