from .property_cache import PropertyCache

__all__ = ["PropertyCache"]
