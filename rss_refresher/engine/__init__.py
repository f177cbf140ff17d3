"""Engine components: conditional fetch, dedup store, downstream publishing."""

from .dedup import FeedStore, SQLiteFeedStore
from .fetcher import FeedFetcher, FetchClient, FetchResult
from .publisher import FileItemPublisher, ItemPublisher, RedisItemPublisher

__all__ = [
    "FeedFetcher",
    "FeedStore",
    "FetchClient",
    "FetchResult",
    "FileItemPublisher",
    "ItemPublisher",
    "RedisItemPublisher",
    "SQLiteFeedStore",
]
