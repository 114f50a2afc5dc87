"""Billing and wage settlement engine for field-services operations."""

__version__ = "0.1.0"
