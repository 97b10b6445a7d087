"""
banking_modules.banking.config
==============================

Responsibility:
    Configuration schema for the banking module: matcher weights, the
    auto-match clear-winner settings, and import defaults.  Values can be
    built in code, from a dict, or from a YAML file.

Architecture:
    Module layer.  Consumed by BankingService and ImportService.
    MUST NOT be imported by banking_kernel or banking_engines.

Invariants enforced:
    - ``ambiguity_ratio`` is in (0, 1]; ``candidate_limit`` and
      ``suggestion_limit`` are positive (validated in ``__post_init__``).
    - Matcher weight ranges are validated by ``MatcherWeights`` itself.
    - Numeric values read from YAML become ``Decimal`` via ``str`` so that
      ``0.1`` stays ``Decimal("0.1")``.

Failure modes:
    - Invalid configuration values -> ``ValueError`` from ``__post_init__``.
    - Unknown keys -> ``TypeError`` from the dataclass constructor.
    - Missing YAML file -> ``FileNotFoundError``; malformed YAML ->
      ``yaml.YAMLError``.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Self

import yaml

from banking_engines.matching import MatcherWeights
from banking_kernel.logging_config import get_logger

logger = get_logger("modules.banking.config")


def _to_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class AutoMatchSettings:
    """
    Knobs for unattended matching and interactive suggestions.

    Attributes:
        ambiguity_ratio: A runner-up at or above ``best * ambiguity_ratio``
            blocks an automatic match.
        candidate_limit: Unallocated payments fetched per transaction.
        suggestion_limit: Suggestions returned for interactive review.
    """

    ambiguity_ratio: Decimal = Decimal("0.9")
    candidate_limit: int = 20
    suggestion_limit: int = 5

    def __post_init__(self) -> None:
        if not (Decimal("0") < self.ambiguity_ratio <= Decimal("1")):
            raise ValueError("ambiguity_ratio must be in (0, 1]")
        if self.candidate_limit <= 0:
            raise ValueError("candidate_limit must be positive")
        if self.suggestion_limit <= 0:
            raise ValueError("suggestion_limit must be positive")


@dataclass
class BankingConfig:
    """
    Configuration schema for the banking module.

    Contract:
        All fields have sensible defaults.  ``__post_init__`` validates and
        raises ``ValueError`` on violation.

    Example::

        config = BankingConfig.from_dict({
            "default_currency": "EUR",
            "matcher": {"min_confidence": "0.4", "max_date_diff_days": 5},
            "auto_match": {"ambiguity_ratio": "0.85"},
        })
    """

    matcher: MatcherWeights = field(default_factory=MatcherWeights)
    auto_match: AutoMatchSettings = field(default_factory=AutoMatchSettings)
    default_currency: str = "EUR"
    skip_duplicates: bool = True

    def __post_init__(self):
        if len(self.default_currency) != 3 or not self.default_currency.isalpha():
            raise ValueError("default_currency must be a 3-letter ISO 4217 code")

        logger.info(
            "banking_config_initialized",
            extra={
                "default_currency": self.default_currency,
                "skip_duplicates": self.skip_duplicates,
                "min_confidence": str(self.matcher.min_confidence),
                "ambiguity_ratio": str(self.auto_match.ambiguity_ratio),
                "candidate_limit": self.auto_match.candidate_limit,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the production defaults."""
        logger.info("banking_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g., parsed YAML)."""
        logger.info(
            "banking_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        values = dict(data)

        matcher_data = values.pop("matcher", None) or {}
        matcher_kwargs = {
            key: (int(val) if key == "max_date_diff_days" else _to_decimal(val))
            for key, val in matcher_data.items()
        }

        auto_data = values.pop("auto_match", None) or {}
        auto_kwargs = {
            key: (_to_decimal(val) if key == "ambiguity_ratio" else int(val))
            for key, val in auto_data.items()
        }

        return cls(
            matcher=MatcherWeights(**matcher_kwargs),
            auto_match=AutoMatchSettings(**auto_kwargs),
            **values,
        )


def load_banking_config(path: str | Path) -> BankingConfig:
    """
    Load a ``BankingConfig`` from a YAML file.

    An empty file yields the defaults.  A top-level ``banking:`` key is
    accepted so the settings can live in a shared application file.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if "banking" in data:
        data = data["banking"] or {}
    return BankingConfig.from_dict(data)
