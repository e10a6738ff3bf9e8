import threading

import pytest

from execservice.jobqueue import InMemoryQueue, Job, QueueEmptyError


def test_new_queue_is_empty():
    queue = InMemoryQueue()
    assert queue.is_empty()
    assert len(queue) == 0


def test_jobs_come_out_in_order():
    queue = InMemoryQueue()
    jobs = [Job(id=str(n), payload={"n": n}) for n in range(5)]
    for job in jobs:
        queue.enqueue(job)
    assert len(queue) == len(jobs)
    assert [queue.dequeue() for _ in jobs] == jobs
    assert queue.is_empty()


def test_dequeue_from_empty_raises():
    queue = InMemoryQueue()
    with pytest.raises(QueueEmptyError, match="queue is empty"):
        queue.dequeue()


def test_dequeue_after_draining_raises():
    queue = InMemoryQueue()
    queue.enqueue(Job(id="a"))
    assert queue.dequeue().id == "a"
    with pytest.raises(QueueEmptyError):
        queue.dequeue()


def test_job_payload_defaults_to_none():
    queue = InMemoryQueue()
    queue.enqueue(Job(id="x"))
    assert queue.dequeue().payload is None


def test_concurrent_enqueue_keeps_every_job():
    queue = InMemoryQueue()
    per_thread = 200
    thread_count = 8

    def producer(prefix):
        for n in range(per_thread):
            queue.enqueue(Job(id=f"{prefix}-{n}"))

    threads = [threading.Thread(target=producer, args=(t,)) for t in range(thread_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(queue) == per_thread * thread_count
    ids = set()
    while not queue.is_empty():
        ids.add(queue.dequeue().id)
    assert len(ids) == per_thread * thread_count