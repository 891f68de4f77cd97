"""
Books Kernel

Persistence, domain values and shared infrastructure for the
tax, settlement and aggregation core:
- Money rounding and jurisdiction resolution
- Document status state machines
- ORM models for documents, lines, payments and allocations
- Read-only selectors returning frozen snapshots
- Structured logging and typed errors
"""

__version__ = "0.1.0"
