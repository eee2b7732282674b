"""Linkverse - bookmark manager backend with a shared data cache and AI link enrichment."""

__version__ = "1.0.0"
