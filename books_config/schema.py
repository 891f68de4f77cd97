"""
Configuration schema for the books core.

Field defaults reproduce the packaged ``defaults.yaml``; a company file
overrides any subset of them.  Validation happens in ``__post_init__`` and
raises ``ValueError`` with a descriptive message.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Self

from books_kernel.logging_config import get_logger

logger = get_logger("config.schema")

DOCUMENT_NUMBER_KEYS = (
    "Invoice",
    "Bill",
    "CreditNote",
    "DebitNote",
    "Quotation",
    "PurchaseOrder",
    "PaymentReceived",
    "PaymentMade",
)

_DEFAULT_PREFIXES = {
    "Invoice": "INV",
    "Bill": "BILL",
    "CreditNote": "CN",
    "DebitNote": "DN",
    "Quotation": "QT",
    "PurchaseOrder": "PO",
    "PaymentReceived": "PMT-R",
    "PaymentMade": "PMT-M",
}


@dataclass(frozen=True)
class NumberFormat:
    """How a document or payment number is rendered: PREFIX-0001."""

    prefix: str
    padding: int = 4
    separator: str = "-"

    def __post_init__(self) -> None:
        if not self.prefix or not self.prefix.strip():
            raise ValueError("number format prefix cannot be empty")
        if self.padding < 1 or self.padding > 12:
            raise ValueError(f"number format padding must be 1-12, got {self.padding}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            prefix=str(data["prefix"]),
            padding=int(data.get("padding", 4)),
            separator=str(data.get("separator", "-")),
        )


def _default_number_formats() -> dict[str, NumberFormat]:
    return {key: NumberFormat(prefix) for key, prefix in _DEFAULT_PREFIXES.items()}


@dataclass
class BooksConfig:
    """
    Runtime settings for tax determination, settlement and reporting.

        config = BooksConfig(home_jurisdiction="Karnataka", auto_round_off=True)
    """

    # Seller identity for tax determination
    home_jurisdiction: str = "Maharashtra"
    home_gstin: str | None = None
    home_currency: str = "INR"
    export_place_of_supply: str = "Other Territory"

    # Rounding
    rounding_tolerance: Decimal = Decimal("0.01")
    auto_round_off: bool = False

    # Aging thresholds (days past due)
    aging_bucket_days: tuple[int, ...] = (30, 60, 90)

    # Payment terms
    payment_terms_days: tuple[int, ...] = (15, 30, 45, 60, 90)
    default_payment_terms_days: int = 30

    # Reporting windows
    series_default_months: int = 6

    # Settlement
    enforce_payment_allocation_limit: bool = True

    number_formats: dict[str, NumberFormat] = field(default_factory=_default_number_formats)

    def __post_init__(self) -> None:
        if not self.home_jurisdiction or not self.home_jurisdiction.strip():
            raise ValueError("home_jurisdiction cannot be empty")
        if len(self.home_currency) != 3:
            raise ValueError(f"home_currency must be an ISO 4217 code, got '{self.home_currency}'")
        self.rounding_tolerance = Decimal(str(self.rounding_tolerance))
        if self.rounding_tolerance < 0 or self.rounding_tolerance > 1:
            raise ValueError(
                f"rounding_tolerance must be between 0 and 1, got {self.rounding_tolerance}"
            )
        self.aging_bucket_days = tuple(int(d) for d in self.aging_bucket_days)
        if not self.aging_bucket_days:
            raise ValueError("aging_bucket_days cannot be empty")
        if any(d <= 0 for d in self.aging_bucket_days) or list(self.aging_bucket_days) != sorted(
            set(self.aging_bucket_days)
        ):
            raise ValueError(
                f"aging_bucket_days must be positive and strictly increasing, "
                f"got {self.aging_bucket_days}"
            )
        self.payment_terms_days = tuple(int(d) for d in self.payment_terms_days)
        if any(d < 0 for d in self.payment_terms_days):
            raise ValueError("payment_terms_days cannot contain negative values")
        if self.default_payment_terms_days < 0:
            raise ValueError("default_payment_terms_days cannot be negative")
        if self.series_default_months < 1:
            raise ValueError("series_default_months must be at least 1")
        missing = [k for k in DOCUMENT_NUMBER_KEYS if k not in self.number_formats]
        if missing:
            raise ValueError(f"number_formats missing entries for: {', '.join(missing)}")
        logger.debug(
            "books_config_initialized",
            extra={
                "home_jurisdiction": self.home_jurisdiction,
                "aging_bucket_days": list(self.aging_bucket_days),
                "enforce_payment_allocation_limit": self.enforce_payment_allocation_limit,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the built-in defaults."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a parsed YAML mapping; unknown keys are rejected."""
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        kwargs = dict(data)
        if "number_formats" in kwargs:
            formats = _default_number_formats()
            for key, fmt in (kwargs["number_formats"] or {}).items():
                if key not in _DEFAULT_PREFIXES:
                    raise ValueError(f"Unknown number format key: {key}")
                formats[key] = NumberFormat.from_dict(fmt)
            kwargs["number_formats"] = formats
        for key in ("aging_bucket_days", "payment_terms_days"):
            if key in kwargs:
                kwargs[key] = tuple(kwargs[key])
        if "rounding_tolerance" in kwargs:
            kwargs["rounding_tolerance"] = Decimal(str(kwargs["rounding_tolerance"]))
        return cls(**kwargs)

    def number_format(self, key: str) -> NumberFormat:
        return self.number_formats[key]

    def as_dict(self) -> dict[str, Any]:
        return {
            "home_jurisdiction": self.home_jurisdiction,
            "home_gstin": self.home_gstin,
            "home_currency": self.home_currency,
            "export_place_of_supply": self.export_place_of_supply,
            "rounding_tolerance": str(self.rounding_tolerance),
            "auto_round_off": self.auto_round_off,
            "aging_bucket_days": list(self.aging_bucket_days),
            "payment_terms_days": list(self.payment_terms_days),
            "default_payment_terms_days": self.default_payment_terms_days,
            "series_default_months": self.series_default_months,
            "enforce_payment_allocation_limit": self.enforce_payment_allocation_limit,
            "number_formats": {
                key: {"prefix": f.prefix, "padding": f.padding, "separator": f.separator}
                for key, f in sorted(self.number_formats.items())
            },
        }
