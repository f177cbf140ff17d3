"""Downstream item publisher SPI and implementations."""

from .base import ItemPublisher, item_document
from .file_publisher import FileItemPublisher
from .redis_publisher import RedisItemPublisher

__all__ = ["FileItemPublisher", "ItemPublisher", "RedisItemPublisher", "item_document"]
