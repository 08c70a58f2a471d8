from .decorator import StaleIndexError, require_current

__all__ = ["StaleIndexError", "require_current"]
