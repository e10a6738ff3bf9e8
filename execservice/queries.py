"""Database writes for job records."""

from __future__ import annotations

import logging
from typing import Any

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from execservice.models import ExecutedJob

logger = logging.getLogger(__name__)


def add_entry(collection: Collection, entry: ExecutedJob) -> Any:
    """Insert ``entry`` into ``collection`` and return the inserted id."""
    try:
        result = collection.insert_one(entry.to_document())
    except PyMongoError as err:
        logger.error("Error adding entry: %s", err)
        raise
    logger.info("Added entry with ID: %s", result.inserted_id)
    return result.inserted_id