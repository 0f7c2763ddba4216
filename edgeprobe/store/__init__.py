from .client import LimitsStore, RateLimitStore

__all__ = ["LimitsStore", "RateLimitStore"]
