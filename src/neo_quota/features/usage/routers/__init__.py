from .usage_router import usage_router, get_usage_repository

__all__ = ["usage_router", "get_usage_repository"]
