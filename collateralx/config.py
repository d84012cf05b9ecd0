"""
config.py - Engine configuration

LendingConfig is the immutable term sheet of a LendingEngine: the solvency
ratio, the simple-interest rate and the collateral price. Every value is an
integer so that all engine arithmetic stays exact.

Values can be supplied directly or read from the environment:

    COLLATERALX_COLLATERALIZATION_RATIO_BPS=15000
    COLLATERALX_ANNUAL_INTEREST_RATE_BPS=1000
    COLLATERALX_SECONDS_PER_YEAR=31536000
    COLLATERALX_COLLATERAL_PRICE=200
"""

from __future__ import annotations
from dataclasses import dataclass, fields
import os
from typing import Mapping, Optional

from .core import BPS, SECONDS_PER_YEAR


# 150%: collateral value must cover one and a half times the debt.
DEFAULT_COLLATERALIZATION_RATIO_BPS = 15_000

# 10% per year, simple interest.
DEFAULT_ANNUAL_INTEREST_RATE_BPS = 1_000

# Stable minor units credited per base minor unit of collateral.
DEFAULT_COLLATERAL_PRICE = 200

ENV_PREFIX = "COLLATERALX_"


@dataclass(frozen=True, slots=True)
class LendingConfig:
    """
    Immutable lending terms - set when the engine is built, never changes.

    Attributes:
        collateralization_ratio_bps: Required collateral value as basis points
            of debt (15000 = 150%). At least BPS (100%).
        annual_interest_rate_bps: Simple annual interest rate in basis points.
        seconds_per_year: Normalization constant for elapsed time.
        collateral_price: Stable minor units per base minor unit, used to value
            collateral. Both assets share the same decimals.
    """
    collateralization_ratio_bps: int = DEFAULT_COLLATERALIZATION_RATIO_BPS
    annual_interest_rate_bps: int = DEFAULT_ANNUAL_INTEREST_RATE_BPS
    seconds_per_year: int = SECONDS_PER_YEAR
    collateral_price: int = DEFAULT_COLLATERAL_PRICE

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{f.name} must be an integer, got {value!r}")

        if self.collateralization_ratio_bps < BPS:
            raise ValueError(
                f"collateralization_ratio_bps must be at least {BPS}, "
                f"got {self.collateralization_ratio_bps}"
            )
        if self.annual_interest_rate_bps < 0:
            raise ValueError(
                f"annual_interest_rate_bps cannot be negative, got {self.annual_interest_rate_bps}"
            )
        if self.seconds_per_year <= 0:
            raise ValueError(f"seconds_per_year must be positive, got {self.seconds_per_year}")
        if self.collateral_price <= 0:
            raise ValueError(f"collateral_price must be positive, got {self.collateral_price}")

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        prefix: str = ENV_PREFIX,
    ) -> LendingConfig:
        """
        Build a config from environment variables, falling back to defaults.

        Args:
            environ: Mapping to read from (default: os.environ)
            prefix: Variable name prefix; the field name is upper-cased after it

        Raises:
            ValueError: If a variable is set but is not an integer, or the
                        resulting config is invalid.
        """
        if environ is None:
            environ = os.environ

        values = {}
        for f in fields(cls):
            key = prefix + f.name.upper()
            raw = environ.get(key)
            if raw is None or raw.strip() == "":
                continue
            try:
                values[f.name] = int(raw.strip())
            except ValueError:
                raise ValueError(f"{key} must be an integer, got {raw!r}") from None
        return cls(**values)
