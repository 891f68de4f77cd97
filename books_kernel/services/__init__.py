"""Kernel services: infrastructure that writes but never commits."""

from books_kernel.services.sequence_service import SequenceService, format_number

__all__ = ["SequenceService", "format_number"]
