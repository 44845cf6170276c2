"""
Request handlers: the stock pages and the static-file fallback.
"""

from .pages import home, about, submit
from .static import StaticFileHandler

__all__ = [
    "home",
    "about",
    "submit",
    "StaticFileHandler",
]
