"""Message-driven RSS/Atom feed refresher with conditional fetching and entry deduplication."""

__version__ = "0.3.0"
