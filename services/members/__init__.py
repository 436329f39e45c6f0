"""members services package initializer: explicit exports only; no runtime side effects."""

__all__ = ["models", "repo", "routes", "app"]
