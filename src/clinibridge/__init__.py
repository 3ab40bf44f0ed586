"""CliniBridge: find recruiting clinical trials and explain their eligibility criteria."""

__version__ = "0.1.0"
