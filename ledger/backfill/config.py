"""
Configuration for invoice backfill.

Payment modes, invoice types, GST slabs, id prefixes and matching/validation
switches. Config is declarative JSON - edit the file, not the code.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_CONFIG_PATH = Path(__file__).parent / "backfill_config.json"

CUSTOMER_STRATEGIES = ("first", "ranked")


@dataclass
class MatchSettings:
    """Settings for candidate matching."""
    customer_strategy: str = "first"   # "first" (substring, first wins) or "ranked"
    candidate_index: str = "scan"      # "scan" or "ngram"
    enrichment_timeout_seconds: float = 10.0


@dataclass
class ValidationSettings:
    """Boundary checks applied before a draft is saved."""
    strict: bool = True
    max_discount_percent: float = 100.0


@dataclass
class CustomerLinkSettings:
    """Numbering for customers created from finalized invoices."""
    id_prefix: str = "CUST"
    start_number: int = 1600


@dataclass
class Config:
    """Full configuration for invoice backfill."""
    invoice_id_prefix: str = "FLYP"
    currency_symbol: str = "₹"
    payment_modes: list[str] = field(default_factory=lambda: ["Backfilled", "Cash", "UPI", "Card"])
    invoice_types: list[str] = field(default_factory=lambda: ["Tax", "Retail", "Estimate"])
    default_payment_mode: str = "Backfilled"
    default_invoice_type: str = "Tax"
    gst_slabs: list[float] = field(default_factory=lambda: [0, 5, 12, 18, 28])
    matching: MatchSettings = field(default_factory=MatchSettings)
    validation: ValidationSettings = field(default_factory=ValidationSettings)
    customer_link: CustomerLinkSettings = field(default_factory=CustomerLinkSettings)

    def __post_init__(self):
        if self.matching.customer_strategy not in CUSTOMER_STRATEGIES:
            raise ValueError(
                f"Unknown customer_strategy '{self.matching.customer_strategy}', "
                f"expected one of {CUSTOMER_STRATEGIES}"
            )
        if self.default_payment_mode not in self.payment_modes:
            raise ValueError(f"default_payment_mode '{self.default_payment_mode}' not in payment_modes")
        if self.default_invoice_type not in self.invoice_types:
            raise ValueError(f"default_invoice_type '{self.default_invoice_type}' not in invoice_types")


def load_config(config_path: Optional[str | Path] = None) -> Config:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to backfill_config.json (defaults to the bundled file)

    Returns:
        Config object; keys missing from the file keep their defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    defaults = Config()

    match_data = data.get("matching", {})
    matching = MatchSettings(
        customer_strategy=match_data.get("customer_strategy", defaults.matching.customer_strategy),
        candidate_index=match_data.get("candidate_index", defaults.matching.candidate_index),
        enrichment_timeout_seconds=float(
            match_data.get("enrichment_timeout_seconds", defaults.matching.enrichment_timeout_seconds)
        ),
    )

    validation_data = data.get("validation", {})
    validation = ValidationSettings(
        strict=bool(validation_data.get("strict", defaults.validation.strict)),
        max_discount_percent=float(
            validation_data.get("max_discount_percent", defaults.validation.max_discount_percent)
        ),
    )

    link_data = data.get("customer_link", {})
    customer_link = CustomerLinkSettings(
        id_prefix=link_data.get("id_prefix", defaults.customer_link.id_prefix),
        start_number=int(link_data.get("start_number", defaults.customer_link.start_number)),
    )

    return Config(
        invoice_id_prefix=data.get("invoice_id_prefix", defaults.invoice_id_prefix),
        currency_symbol=data.get("currency_symbol", defaults.currency_symbol),
        payment_modes=data.get("payment_modes", defaults.payment_modes),
        invoice_types=data.get("invoice_types", defaults.invoice_types),
        default_payment_mode=data.get("default_payment_mode", defaults.default_payment_mode),
        default_invoice_type=data.get("default_invoice_type", defaults.default_invoice_type),
        gst_slabs=[float(s) for s in data.get("gst_slabs", defaults.gst_slabs)],
        matching=matching,
        validation=validation,
        customer_link=customer_link,
    )
