"""tixfile - file based ticket tracking with a reconciled on-disk cache."""

from tixfile._version import version as __version__

__all__ = ["__version__"]
