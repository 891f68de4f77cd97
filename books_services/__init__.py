"""
Module: books_services
Responsibility:
    Stateful services that own the transaction boundary: document lifecycle,
    payment allocation and read-only reporting.

Architecture position:
    Services -- above books_engines and books_kernel.  Services read through
    the kernel selectors, write ORM rows, call the pure engines and commit
    or roll back.  Nothing below this layer commits.
"""

from books_services.allocation_service import (
    AllocationResult,
    AllocationService,
    PaymentResult,
    PaymentSummary,
)
from books_services.document_service import DocumentService
from books_services.report_query import ReportQuery
from books_services.reporting_service import ReportingService, aging_payload, to_json

__all__ = [
    "AllocationResult",
    "AllocationService",
    "DocumentService",
    "PaymentResult",
    "PaymentSummary",
    "ReportQuery",
    "ReportingService",
    "aging_payload",
    "to_json",
]
