"""Command-line entry point that starts a coordinator or worker node."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import threading

from execservice.config import Settings, load_settings
from execservice.coordinator import Coordinator
from execservice.database import connect_mongodb, disconnect_mongodb
from execservice.node import Node
from execservice.worker import WorkerNode

logger = logging.getLogger(__name__)


class UnknownNodeTypeError(ValueError):
    """Raised when ``node.type`` names no known kind of node."""


def new_node(settings: Settings) -> Node:
    """Create the node that ``node.type`` asks for: a worker or a coordinator."""
    node_type = settings.get_string("node.type")
    logger.info("Node type: %s", node_type)
    if node_type == "worker":
        return WorkerNode(settings)
    if node_type == "coordinator":
        return Coordinator(settings)
    raise UnknownNodeTypeError(f"unknown node type: {node_type}")


def _wait_for_termination() -> None:
    stopping = threading.Event()
    previous = {
        signum: signal.signal(signum, lambda *_: stopping.set())
        for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        while not stopping.wait(1.0):
            pass
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def main(argv: list[str] | None = None) -> int:
    """Load settings, connect to MongoDB, run a node until interrupted."""
    parser = argparse.ArgumentParser(prog="execservice", description="Run a job execution node.")
    parser.add_argument("--config", help="YAML file, or a directory holding config.yaml")
    settings = load_settings(parser.parse_args(argv).config)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logger.info("Logger initialized")

    mongo_uri = os.environ.get("MONGO_URI", "")
    if not mongo_uri:
        logger.critical("MONGO_URI environment variable is not set")
        return 1
    try:
        connect_mongodb(mongo_uri)
    except ConnectionError as err:
        logger.critical("Failed to connect to MongoDB: %s", err)
        return 1

    try:
        logger.info("Connected to MongoDB")
        logger.info("Starting node...")
        try:
            node = new_node(settings)
            node.start()
        except (OSError, ValueError) as err:
            logger.critical("Failed to start node: %s", err)
            return 1
        logger.info("Node started: %s", node.get_id())
        _wait_for_termination()
        logger.info("Termination signal received, shutting down...")
        node.stop()
        logger.info("Node stopped")
        return 0
    finally:
        disconnect_mongodb()