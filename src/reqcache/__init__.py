"""Caching, retrying, concurrency-bounded HTTP fetch layer."""

from .workflows import *  # noqa: F401,F403
from .workflows import __all__  # noqa: F401

__version__ = "0.1.0"
