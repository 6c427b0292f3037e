"""SkyUp website backend: submissions, resume relay, invoice receipts and admin auth."""

__version__ = "0.3.0"
