import json
import threading
from datetime import timedelta

import pytest
import requests
import responses

from execservice.config import Settings
from execservice.coordinator import (
    Coordinator,
    CoordinatorJob,
    initialize_workers_from_config,
)

W1 = "http://w1.example.com:8080"
W2 = "http://w2.example.com:8080"
MESSAGE = json.dumps(
    {"job_id": "job-42", "dockerfile_reference": "http://files.example.com/Dockerfile"}
)


@pytest.fixture
def rsps():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock_requests:
        yield mock_requests


def make_settings(heartbeat="5s", capacity=2, workers=None):
    if workers is None:
        workers = [
            {"id": "w1", "name": "first", "address": W1},
            {"id": "w2", "name": "second", "address": W2},
        ]
    return Settings(
        {
            "workers": {
                "heartbeat_interval": heartbeat,
                "max_concurrent_jobs": capacity,
                "list": workers,
            }
        }
    )


def test_initialize_workers_from_config():
    manager = initialize_workers_from_config(make_settings())
    workers = manager.workers()
    assert sorted(workers) == ["w1", "w2"]
    assert workers["w1"].name == "first"
    assert workers["w2"].address == W2
    assert workers["w1"].assigned_job is None


def test_initialize_workers_requires_list():
    settings = Settings({"workers": {"heartbeat_interval": "5s"}})
    with pytest.raises(ValueError):
        initialize_workers_from_config(settings)


def test_initialize_workers_requires_string_fields():
    settings = make_settings(workers=[{"id": "w1", "name": "first"}])
    with pytest.raises(ValueError):
        initialize_workers_from_config(settings)


def test_coordinator_reads_settings():
    coordinator = Coordinator(make_settings(heartbeat="5s"))
    assert coordinator.health_check == timedelta(seconds=5)
    assert coordinator.get_id() == "coordinator"
    assert len(coordinator.workers) == 2


def test_invalid_heartbeat_interval():
    with pytest.raises(ValueError, match="invalid duration for workers.heartbeat_interval"):
        Coordinator(make_settings(heartbeat="soon"))


def test_negative_capacity_rejected():
    with pytest.raises(ValueError):
        Coordinator(make_settings(capacity=-1))


def test_to_payload_uses_wire_names():
    job = CoordinatorJob(id="1", job_id="j", worker_id="w", dockerfile_reference="d", job_status="pending")
    assert job.to_payload() == {
        "ID": "1",
        "JobID": "j",
        "WorkerID": "w",
        "DockerfileReference": "d",
        "JobStatus": "pending",
    }


def test_handle_message_creates_pending_job():
    coordinator = Coordinator(make_settings())
    job = coordinator.handle_message(MESSAGE)
    assert job == CoordinatorJob(
        id="1",
        job_id="job-42",
        worker_id="",
        dockerfile_reference="http://files.example.com/Dockerfile",
        job_status="pending",
    )


@pytest.mark.parametrize("message", ["{broken", "[1, 2]", b'"text"'])
def test_handle_message_ignores_non_objects(message):
    coordinator = Coordinator(make_settings())
    assert coordinator.handle_message(message) is None


def test_handle_message_requires_fields():
    coordinator = Coordinator(make_settings())
    with pytest.raises(ValueError):
        coordinator.handle_message(json.dumps({"job_id": "job-1"}))


def test_handle_message_drops_job_when_full_and_stopping():
    coordinator = Coordinator(make_settings(capacity=1))
    assert coordinator.handle_message(MESSAGE) is not None
    coordinator.stop()
    assert coordinator.handle_message(MESSAGE) is None


def test_monitor_once_assigns_job_to_free_worker(rsps):
    rsps.add(responses.GET, W1 + "/health", body="OK")
    rsps.add(responses.GET, W1 + "/job", json={"JobID": ""})
    rsps.add(responses.POST, W1 + "/execute", body="started")
    rsps.add(responses.GET, W2 + "/health", body="OK")
    rsps.add(responses.GET, W2 + "/job", json={"JobID": "busy-job"})
    coordinator = Coordinator(make_settings())
    job = coordinator.handle_message(MESSAGE)

    assigned = coordinator.monitor_once()

    assert assigned == {"w1": job}
    posts = [call for call in rsps.calls if call.request.method == "POST"]
    assert len(posts) == 1
    assert json.loads(posts[0].request.body) == job.to_payload()
    assert coordinator.workers.workers()["w1"].status == "active"


def test_monitor_once_removes_unhealthy_worker(rsps):
    rsps.add(responses.GET, W1 + "/health", status=500)
    rsps.add(responses.GET, W1 + "/job", body=requests.ConnectionError("down"))
    rsps.add(responses.GET, W2 + "/health", body="OK")
    rsps.add(responses.GET, W2 + "/job", json={"JobID": "busy-job"})
    coordinator = Coordinator(make_settings())

    assert coordinator.monitor_once() == {}
    assert list(coordinator.workers.workers()) == ["w2"]


def test_monitor_once_with_empty_queue_assigns_nothing(rsps):
    for address in (W1, W2):
        rsps.add(responses.GET, address + "/health", body="OK")
        rsps.add(responses.GET, address + "/job", json={"JobID": ""})
    coordinator = Coordinator(make_settings())

    assert coordinator.monitor_once() == {}
    assert all(call.request.method == "GET" for call in rsps.calls)


class _OneShotConsumer:
    def __init__(self, message):
        self.message = message
        self.calls = 0
        self.delivered = threading.Event()
        self.release = threading.Event()

    def consume_message(self):
        self.calls += 1
        if self.calls == 1:
            return self.message
        self.delivered.set()
        self.release.wait(5)
        raise RuntimeError("closed")


def test_start_fetches_jobs_from_consumer(rsps, capsys):
    consumer = _OneShotConsumer(MESSAGE)
    coordinator = Coordinator(make_settings(heartbeat="1h"), consumer)
    coordinator.start()
    try:
        assert consumer.delivered.wait(5)
    finally:
        consumer.release.set()
        coordinator.stop()
    assert "Coordinator started" in capsys.readouterr().out

    rsps.add(responses.GET, W1 + "/health", body="OK")
    rsps.add(responses.GET, W1 + "/job", json={"JobID": ""})
    rsps.add(responses.POST, W1 + "/execute", body="started")
    rsps.add(responses.GET, W2 + "/health", body="OK")
    rsps.add(responses.GET, W2 + "/job", json={"JobID": "busy-job"})
    assigned = coordinator.monitor_once()
    assert assigned["w1"].job_id == "job-42"