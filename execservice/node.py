"""The common interface of coordinator and worker nodes."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Node(ABC):
    """A node in the execution cluster."""

    @abstractmethod
    def start(self) -> None:
        """Start the node."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the node gracefully."""

    @abstractmethod
    def get_id(self) -> str:
        """Return the node's unique identifier."""