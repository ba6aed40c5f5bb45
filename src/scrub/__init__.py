"""Scrub: safe cleanup of caches, temp files and other reclaimable clutter."""

__version__ = "0.1.0"
