# services/__init__.py
"""services package initializer: one subpackage per campus service."""

from __future__ import annotations

__all__ = ["content", "community", "members", "tutor"]
