"""The worker node: runs jobs as Docker containers and reports its state over HTTP."""

from __future__ import annotations

import json
import logging
import os
import subprocess
import tempfile
import threading
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

import requests
from bson import ObjectId
from pymongo.errors import PyMongoError

from execservice.config import Settings
from execservice.database import get_collection
from execservice.models import ExecutedJob
from execservice.node import Node
from execservice.queries import add_entry

logger = logging.getLogger(__name__)

DATABASE_NAME = "hackathon"
COLLECTION_NAME = "executed_jobs"
IMAGE_PREFIX = "job-image-"
ACCEPTED_MESSAGE = "Job execution started successfully"
HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_METHOD_NOT_ALLOWED = 405

_EXECUTION_ERRORS = (
    requests.RequestException,
    subprocess.SubprocessError,
    OSError,
    ValueError,
)


def _split_address(address: str) -> tuple[str, int]:
    host, separator, port = address.rpartition(":")
    if not separator:
        raise ValueError(f"address {address!r} has no port")
    try:
        number = int(port)
    except ValueError as err:
        raise ValueError(f"address {address!r} has an invalid port") from err
    return host.strip("[]"), number


def mark_job_completed(job_id: str, status: str, error: str) -> None:
    """Record the outcome of a job in the executed-jobs collection."""
    logger.info("status: %s", status)
    now = datetime.now(timezone.utc)
    collection = get_collection(DATABASE_NAME, COLLECTION_NAME)
    entry = ExecutedJob(
        id=ObjectId(),
        job_id=job_id,
        dockerfile_reference="",
        scheduled_time=now,
        execution_completion_time=now,
        status=status,
        error_message=error,
    )
    logger.info("Worker: Marking job %s as completed with status: %s", job_id, status)
    try:
        add_entry(collection, entry)
    except PyMongoError as err:
        logger.error("Error updating job status: %s", err)


def _make_handler(node: WorkerNode) -> type[BaseHTTPRequestHandler]:
    class _Handler(BaseHTTPRequestHandler):
        def _reply(
            self, status: int, text: str, content_type: str = "text/plain; charset=utf-8"
        ) -> None:
            body = text.encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def _dispatch(self) -> None:
            path = self.path.split("?", 1)[0]
            if path == "/health":
                self._reply(HTTP_OK, "OK")
            elif path == "/job":
                if self.command == "GET":
                    self._reply(
                        HTTP_OK, json.dumps(node.current_job()) + "\n", "application/json"
                    )
                else:
                    self._reply(HTTP_METHOD_NOT_ALLOWED, "Method not allowed")
            elif path == "/execute":
                if self.command != "POST":
                    self._reply(HTTP_METHOD_NOT_ALLOWED, "Invalid request method\n")
                    return
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length)
                status, message = node.handle_execute(body)
                self._reply(status, message if status == HTTP_OK else message + "\n")
            else:
                self._reply(HTTP_NOT_FOUND, "404 page not found\n")

        do_GET = _dispatch
        do_POST = _dispatch
        do_PUT = _dispatch
        do_DELETE = _dispatch
        do_PATCH = _dispatch

        def log_message(self, format: str, *args: Any) -> None:
            logger.debug("Worker %s: " + format, node.id, *args)

    return _Handler


class WorkerNode(Node):
    """A node that builds and runs the Dockerfiles of the jobs it is sent."""

    def __init__(self, settings: Settings) -> None:
        self.id = settings.get_string("node.id")
        self.address = settings.get_string("node.address")
        self.job_id = ""
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Serve the worker's HTTP endpoints in a background thread."""
        logger.info("Worker %s: Starting on %s", self.id, self.address)
        server = ThreadingHTTPServer(_split_address(self.address), _make_handler(self))
        server.daemon_threads = True
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        self._server = server
        self._thread = thread

    def stop(self) -> None:
        """Shut the HTTP server down, if it is running."""
        logger.info("Worker %s: Stopping", self.id)
        server, thread = self._server, self._thread
        self._server = self._thread = None
        if server is not None:
            server.shutdown()
            server.server_close()
        if thread is not None:
            thread.join()

    def get_id(self) -> str:
        return self.id

    def current_job(self) -> dict[str, str]:
        """Return the body of the job endpoint: the id of the running job, or empty."""
        return {"JobID": self.job_id}

    def handle_execute(self, body: str | bytes) -> tuple[int, str]:
        """Run the job in a JSON request body; return the HTTP status and message."""
        logger.info("Worker %s: Received job execution request", self.id)
        try:
            payload: Any = json.loads(body)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            self.job_id = ""
            return HTTP_BAD_REQUEST, "Failed to parse job payload"
        job_id = payload.get("JobID")
        if not isinstance(job_id, str):
            self.job_id = ""
            return HTTP_BAD_REQUEST, "Invalid job payload"

        logger.info("Worker %s: Received job: %s", self.id, payload)
        self.job_id = job_id
        try:
            self.execute_job(payload)
        except _EXECUTION_ERRORS as err:
            logger.error("Worker %s: Job %s failed: %s", self.id, job_id, err)
            mark_job_completed(job_id, "error", str(err))
        else:
            mark_job_completed(job_id, "success", "")
            logger.info("Worker %s: Job %s executed successfully", self.id, job_id)
        finally:
            self.job_id = ""
        return HTTP_OK, ACCEPTED_MESSAGE

    def execute_job(self, job_payload: dict[str, Any]) -> None:
        """Fetch the job's Dockerfile, build it as an image and run a container of it."""
        logger.info("Worker %s: Executing job with payload: %s", self.id, job_payload)
        reference = job_payload.get("DockerfileReference")
        job_id = job_payload.get("JobID")
        if not isinstance(reference, str):
            raise ValueError("job payload needs a string DockerfileReference")
        if not isinstance(job_id, str):
            raise ValueError("job payload needs a string JobID")

        logger.info("Worker %s: Fetching Dockerfile from URL: %s", self.id, reference)
        response = requests.get(reference)
        logger.info(
            "Worker %s: Received response from Dockerfile URL: %d",
            self.id,
            response.status_code,
        )
        if response.status_code != HTTP_OK:
            raise requests.HTTPError(
                f"fetching Dockerfile returned status {response.status_code}",
                response=response,
            )

        descriptor, path = tempfile.mkstemp(prefix="dockerfile-", suffix=".Dockerfile")
        try:
            with os.fdopen(descriptor, "wb") as handle:
                handle.write(response.content)
            logger.info("Worker %s: Dockerfile saved to temporary file: %s", self.id, path)
            image = IMAGE_PREFIX + job_id
            subprocess.run(["docker", "build", "-t", image, "-f", path, "."], check=True)
            logger.info("Worker %s: Running Docker container for image %s", self.id, image)
            subprocess.run(["docker", "run", "--rm", image], check=True)
        finally:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
        logger.info("Worker %s: Job execution completed", self.id)