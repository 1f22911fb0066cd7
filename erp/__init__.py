"""ERP inventory service for imported electronics."""

__version__ = "1.0.0"
