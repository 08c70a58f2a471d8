import logging
from functools import wraps


logger = logging.getLogger(__name__)


class StaleIndexError(RuntimeError):
    """Raised when derived state is read before it caught up with its source"""


def require_current(source_attr: str, version_attr: str = "_version"):
    """
    A decorator to check that an object's cached view matches its source before a query.

    The decorated object stores the source's ``version`` it was last built
    from in ``version_attr``; the source itself lives in ``source_attr``.

    Args:
        source_attr: Name of the instance attribute holding the source (it must expose ``version``).
        version_attr: Name of the instance attribute holding the version the view was built from.

    Returns:
        The decorated method, which raises StaleIndexError if the view is out of date.
    """

    def decorator(method):
        @wraps(method)
        def wrapper(self, *args, **kwargs):
            if not hasattr(self, source_attr):
                raise AttributeError(f"Instance variable '{source_attr}' does not exist.")
            source_version = getattr(self, source_attr).version
            built_version = getattr(self, version_attr, None)
            if built_version != source_version:
                logger.error(
                    f"{type(self).__name__}.{method.__name__} called on a stale view "
                    f"(built for version {built_version}, source is at {source_version})"
                )
                raise StaleIndexError(
                    f"{type(self).__name__} must be rebuilt before {method.__name__}()"
                )
            return method(self, *args, **kwargs)

        return wrapper

    return decorator
