"""Remote worker nodes as seen by the coordinator, and the registry that tracks them."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import requests

from execservice.models import ZERO_TIME

if TYPE_CHECKING:
    from execservice.coordinator import CoordinatorJob

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_BUSY = "busy"
STATUS_INACTIVE = "inactive"

HTTP_OK = 200

# Wire names of job fields mapped to attribute names.
_JOB_FIELDS = {
    "ID": "id",
    "JobID": "job_id",
    "WorkerID": "worker_id",
    "DockerfileReference": "dockerfile_reference",
    "JobStatus": "job_status",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _job_payload(job: Any) -> dict[str, Any]:
    if isinstance(job, Mapping):
        return dict(job)
    return job.to_payload()


def _decode_job(data: Any) -> CoordinatorJob:
    from execservice.coordinator import CoordinatorJob

    if data is None:
        return CoordinatorJob()
    if not isinstance(data, Mapping):
        raise ValueError("job response is not a JSON object")
    lowered = {str(key).lower(): value for key, value in data.items()}
    fields: dict[str, str] = {}
    for wire_name, attribute in _JOB_FIELDS.items():
        value = lowered.get(wire_name.lower())
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValueError(f"job field {wire_name} is not a string: {value!r}")
        fields[attribute] = value
    return CoordinatorJob(**fields)


@dataclass(eq=False)
class RemoteWorker:
    """A worker node reachable over HTTP."""

    id: str
    name: str = ""
    address: str = ""
    status: str = ""
    assigned_job: CoordinatorJob | None = None
    last_heartbeat: datetime = ZERO_TIME

    def is_healthy(self) -> bool:
        """Return whether the worker answers its health check with 200 OK."""
        try:
            response = requests.get(self.address + "/health")
        except requests.RequestException:
            return False
        response.close()
        return response.status_code == HTTP_OK

    def assign_job(self, job: Any) -> bool:
        """Send ``job`` to the worker; return whether the worker accepted it.

        A failure to reach the worker at all is raised.
        """
        self.status = STATUS_BUSY
        payload = _job_payload(job)
        logger.info("Assigning job to worker %s: %s", self.id, payload.get("ID"))
        response = requests.post(self.address + "/execute", json=payload)
        if response.status_code != HTTP_OK:
            logger.error(
                "Failed to assign job to worker %s: %s %s",
                self.id,
                response.status_code,
                response.text,
            )
            return False
        logger.info("Job assigned to worker %s successfully", self.id)
        self.status = STATUS_ACTIVE
        return True

    def is_free(self) -> bool:
        """Return whether the worker reports that it has no job."""
        try:
            response = requests.get(self.address + "/job")
        except requests.RequestException as err:
            logger.error("Error checking job status for worker %s: %s", self.id, err)
            return False
        if response.status_code != HTTP_OK:
            logger.error(
                "Error checking job status for worker %s: status %s",
                self.id,
                response.status_code,
            )
            return False
        try:
            job = response.json()
        except ValueError as err:
            logger.error("Error decoding job response for worker %s: %s", self.id, err)
            return False
        if not isinstance(job, dict):
            logger.error("Invalid job response format for worker %s", self.id)
            return False
        job_id = job.get("JobID")
        if not isinstance(job_id, str):
            logger.error("Invalid job ID format for worker %s", self.id)
            return False
        return job_id == ""

    def update_job_status(self) -> None:
        """Refresh ``assigned_job`` from the worker's current job."""
        response = requests.get(self.address + "/job")
        if response.status_code != HTTP_OK:
            response.close()
            self.assigned_job = None
            return
        try:
            data = response.json()
        except ValueError as err:
            raise ValueError(f"invalid job response from worker {self.id}: {err}") from err
        self.assigned_job = _decode_job(data)


class WorkerManager:
    """A thread-safe registry of remote workers keyed by id."""

    def __init__(self) -> None:
        self._workers: dict[str, RemoteWorker] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._workers)

    def add_worker(self, worker: RemoteWorker) -> None:
        """Register ``worker``, replacing any worker with the same id."""
        with self._lock:
            self._workers[worker.id] = worker

    def remove_worker(self, worker_id: str) -> None:
        """Forget the worker with ``worker_id``, if it is registered."""
        with self._lock:
            self._workers.pop(worker_id, None)

    def update_worker_status(self, worker_id: str, status: str) -> None:
        """Set a worker's status and record a heartbeat now."""
        with self._lock:
            worker = self._workers.get(worker_id)
            if worker is not None:
                worker.status = status
                worker.last_heartbeat = _now()

    def get_active_workers(self) -> list[RemoteWorker]:
        """Return the workers whose status is active."""
        with self._lock:
            return [w for w in self._workers.values() if w.status == STATUS_ACTIVE]

    def check_worker_health(self, timeout: timedelta) -> None:
        """Mark inactive every worker not heard from within ``timeout``."""
        now = _now()
        with self._lock:
            for worker in self._workers.values():
                if now - worker.last_heartbeat > timeout:
                    worker.status = STATUS_INACTIVE

    def workers(self) -> dict[str, RemoteWorker]:
        """Return a snapshot of the registered workers keyed by id."""
        with self._lock:
            return dict(self._workers)