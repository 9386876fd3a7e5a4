"""Distribution & payout calculation engine for fractional property investments."""

__version__ = "0.1.0"
