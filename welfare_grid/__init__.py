"""Provincial beneficiary grid: identity resolution, fraud risk scoring and claim lifecycle."""

__version__ = "0.1.0"
