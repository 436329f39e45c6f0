"""Tutor package public interface.

Exposes key submodules through __all__ for convenient imports.
"""

__all__ = ["webhook", "ingestion", "routes", "app"]
