"""Concrete adapters for the interfaces in ``exambank.interfaces``."""
