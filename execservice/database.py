"""Process-wide MongoDB connection."""

from __future__ import annotations

import logging

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_MS = 30_000
PING_TIMEOUT_MS = 10_000


class DatabaseNotConnectedError(RuntimeError):
    """Raised when the database is used before a connection was made."""


class _Connection:
    client: MongoClient | None = None


_connection = _Connection()


def connect_mongodb(uri: str) -> MongoClient:
    """Connect to MongoDB at ``uri``, verify it with a ping and keep the client."""
    logger.info("MongoDB connection string: %s", uri)
    try:
        client: MongoClient = MongoClient(
            uri,
            connectTimeoutMS=CONNECT_TIMEOUT_MS,
            serverSelectionTimeoutMS=PING_TIMEOUT_MS,
        )
    except PyMongoError as err:
        logger.error("Error connecting to MongoDB: %s", err)
        raise ConnectionError(f"failed to connect to MongoDB: {err}") from err

    try:
        client.admin.command("ping")
    except PyMongoError as err:
        logger.error("Error pinging MongoDB: %s", err)
        client.close()
        raise ConnectionError(f"failed to ping MongoDB: {err}") from err

    _connection.client = client
    return client


def get_collection(database_name: str, collection_name: str) -> Collection:
    """Return a collection from the connected client."""
    client = _connection.client
    if client is None:
        raise DatabaseNotConnectedError(
            "MongoClient is not initialized. Call connect_mongodb first."
        )
    return client[database_name][collection_name]


def disconnect_mongodb() -> None:
    """Close the connection, if there is one."""
    client = _connection.client
    if client is None:
        return
    _connection.client = None
    try:
        client.close()
    except PyMongoError as err:
        logger.error("Error disconnecting MongoDB: %s", err)
    else:
        logger.info("Disconnected from MongoDB!")