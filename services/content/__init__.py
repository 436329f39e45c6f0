# services/content/__init__.py
"""content services package initializer: explicit exports only; no runtime side effects."""

__all__ = ["models", "repo", "routes", "projector", "video", "app"]
