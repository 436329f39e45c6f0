# services/community/__init__.py
"""community services package initializer: explicit exports only; no runtime side effects."""

__all__ = ["models", "repo", "routes", "feed", "stores", "app"]
