"""
Cached RSS/Atom feeds of wiki changes, namespaces and search results
for Starlette, built on the Django syndication feed generators
"""

from .config import FeedConfig
from .creator import FeedCreator
from .endpoint import FeedEndpoint, feed_endpoint
from .hooks import Hooks
from .options import FeedOptions, resolve_options

__all__ = (
    'FeedConfig',
    'FeedCreator',
    'FeedEndpoint',
    'FeedOptions',
    'Hooks',
    'feed_endpoint',
    'resolve_options',
)
__version__ = '0.1.0'
