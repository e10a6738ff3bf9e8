"""The coordinator node: takes jobs from a message stream and hands them to workers."""

from __future__ import annotations

import json
import logging
import queue
import threading
from collections.abc import Mapping
from dataclasses import dataclass

import requests

from execservice.config import Settings, parse_duration
from execservice.node import Node
from execservice.worker_manager import RemoteWorker, WorkerManager

logger = logging.getLogger(__name__)


@dataclass
class CoordinatorJob:
    """A job as the coordinator tracks and sends it to workers."""

    id: str = ""
    job_id: str = ""
    worker_id: str = ""
    dockerfile_reference: str = ""
    job_status: str = ""

    def to_payload(self) -> dict[str, str]:
        """Return the JSON body sent to a worker."""
        return {
            "ID": self.id,
            "JobID": self.job_id,
            "WorkerID": self.worker_id,
            "DockerfileReference": self.dockerfile_reference,
            "JobStatus": self.job_status,
        }


def initialize_workers_from_config(settings: Settings) -> WorkerManager:
    """Build a worker registry from the ``workers.list`` setting."""
    entries = settings.get("workers.list")
    if not isinstance(entries, list):
        raise ValueError(f"workers.list must be a list, not {entries!r}")
    manager = WorkerManager()
    for entry in entries:
        if not isinstance(entry, Mapping) or not all(
            isinstance(entry.get(name), str) for name in ("id", "name", "address")
        ):
            raise ValueError(f"worker entry needs string id, name and address: {entry!r}")
        logger.info("Adding worker to manager %s %s %s", entry["id"], entry["name"], entry["address"])
        manager.add_worker(RemoteWorker(id=entry["id"], name=entry["name"], address=entry["address"]))
    logger.info("Initializing workers from config")
    return manager


class Coordinator(Node):
    """Queues incoming jobs and assigns them to free, healthy workers."""

    def __init__(self, settings: Settings, consumer=None) -> None:
        self.workers = initialize_workers_from_config(settings)
        try:
            self.health_check = parse_duration(settings.get_string("workers.heartbeat_interval"))
        except ValueError as err:
            raise ValueError(f"invalid duration for workers.heartbeat_interval: {err}") from err
        capacity = settings.get_int("workers.max_concurrent_jobs")
        if capacity < 0:
            raise ValueError("workers.max_concurrent_jobs must not be negative")
        # A capacity of zero still needs room for the job being handed over.
        self._jobs: queue.Queue[CoordinatorJob] = queue.Queue(maxsize=max(capacity, 1))
        self._consumer = consumer
        self._lock = threading.Lock()
        self._stopping = threading.Event()
        self._threads: list[threading.Thread] = []

    def get_id(self) -> str:
        return "coordinator"

    def start(self) -> None:
        """Start monitoring workers and, with a consumer, fetching jobs."""
        print("Coordinator started")
        self._stopping.clear()
        targets = [self._monitor_loop] + ([self._fetch_loop] if self._consumer else [])
        for target in targets:
            thread = threading.Thread(target=target, daemon=True)
            thread.start()
            self._threads.append(thread)

    def stop(self) -> None:
        """Signal the background loops to finish and wait briefly for them."""
        self._stopping.set()
        for thread in self._threads:
            thread.join(5.0)
        self._threads = [thread for thread in self._threads if thread.is_alive()]

    def handle_message(self, message: str | bytes) -> CoordinatorJob | None:
        """Queue a job message as a pending job and return it.

        Returns ``None`` when the message is not a JSON object or the
        coordinator stopped before the job could be queued.
        """
        try:
            decoded = json.loads(message)
        except ValueError as err:
            logger.error("Failed to unmarshal job message: %s", err)
            return None
        if not isinstance(decoded, dict):
            logger.error("Job message is not a JSON object")
            return None
        job_id, reference = decoded.get("job_id"), decoded.get("dockerfile_reference")
        if not isinstance(job_id, str) or not isinstance(reference, str):
            raise ValueError("job message needs string job_id and dockerfile_reference fields")
        job = CoordinatorJob("1", job_id, "", reference, "pending")
        while not self._stopping.is_set():
            try:
                self._jobs.put(job, timeout=0.1)
            except queue.Full:
                continue
            logger.info("Job enqueued %s %s", job.job_id, job.dockerfile_reference)
            return job
        logger.warning("Coordinator stopping, job %s dropped", job_id)
        return None

    def monitor_once(self) -> dict[str, CoordinatorJob]:
        """Check every worker once; return the jobs assigned, keyed by worker id."""
        assigned: dict[str, CoordinatorJob] = {}
        with self._lock:
            for worker_id, worker in self.workers.workers().items():
                if not worker.is_healthy():
                    logger.warning("Worker %s is unhealthy, removing from the list", worker_id)
                    self.workers.remove_worker(worker_id)
                if worker.is_free():
                    try:
                        job = self._jobs.get_nowait()
                    except queue.Empty:
                        continue
                    worker.assign_job(job)
                    assigned[worker_id] = job
        return assigned

    def _monitor_loop(self) -> None:
        while not self._stopping.wait(self.health_check.total_seconds()):
            try:
                self.monitor_once()
            except requests.RequestException:
                logger.exception("Failed to assign a job to a worker")

    def _fetch_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                self.handle_message(self._consumer.consume_message())
            except ValueError as err:
                logger.error("Rejected job message: %s", err)
            except Exception as err:  # consumer failures are logged and retried
                logger.error("Failed to fetch job from queue: %s", err)