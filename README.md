# execservice

A small job execution cluster. Every node runs in one of two roles:

- **worker** (`execservice.worker.WorkerNode`) serves an HTTP API with three
  endpoints:
  - `GET /health` answers `200 OK`.
  - `GET /job` answers `{"JobID": "..."}`. The value is the id of the job
    being run, or an empty string when the worker is idle.
  - `POST /execute` takes a JSON body with string fields `JobID` and
    `DockerfileReference`. The worker downloads the Dockerfile from that URL
    and runs `docker build -t job-image-<JobID> -f <file> .` in its working
    directory, then `docker run --rm job-image-<JobID>`. It writes an
    `ExecutedJob` record with status `success` or `error` to the
    `executed_jobs` collection of the `hackathon` database. The reply
    `Job execution started successfully` is sent only after the job has
    finished. A malformed body is answered with `400`.
- **coordinator** (`execservice.coordinator.Coordinator`) keeps a registry of
  remote workers taken from its settings. At every heartbeat interval it checks
  each worker's `/health` endpoint and removes the workers that fail. When a
  worker's `/job` endpoint reports no job, the coordinator posts the next
  queued job to that worker's `/execute` endpoint.

## Installation

```
pip install .
```

Worker nodes need the `docker` command on their `PATH`.

## Configuration

Settings are read from YAML. Keys are looked up case-insensitively with dotted
paths. By default the command reads `config/config.yaml` or `config/config.yml`.
The `--config` option takes either a file or a directory that holds one of those
two files.

A worker node:

```yaml
node:
  type: worker
  id: worker-1
  address: ":8081"
```

`node.address` is `host:port`. An empty host listens on all interfaces.

A coordinator node:

```yaml
node:
  type: coordinator
workers:
  heartbeat_interval: 5s
  max_concurrent_jobs: 10
  list:
    - id: worker-1
      name: first
      address: http://localhost:8081
```

- `heartbeat_interval` is a duration built from a number and a unit, such as
  `300ms`, `5s`, `1m30s` or `2h`. The accepted units are `ns`, `us`, `ms`, `s`,
  `m` and `h`. `execservice.config.parse_duration` parses it.
- `max_concurrent_jobs` is the size of the pending-job queue. The minimum is
  one, and a negative value is rejected.
- Each entry in `list` needs string `id`, `name` and `address` fields.

The MongoDB connection string is read from the `MONGO_URI` environment
variable, which must be set.

## Running

```
MONGO_URI=mongodb://localhost:27017 execservice --config config/config.yaml
```

The command connects to MongoDB and checks the connection with a ping. It then
starts the node named by `node.type` and runs until it receives `SIGINT` or
`SIGTERM`. At that point it stops the node and closes the database connection.

The command exits with status 1 in these cases:
- `MONGO_URI` is missing.
- The database cannot be reached.
- The node cannot be started. An unknown `node.type` counts as this case; it
  raises `execservice.cli.UnknownNodeTypeError` inside the command.

## Using the pieces directly

```python
from execservice.config import Settings
from execservice.coordinator import Coordinator

settings = Settings({"workers": {"heartbeat_interval": "5s",
                                 "max_concurrent_jobs": 4,
                                 "list": []}})
coordinator = Coordinator(settings)
job = coordinator.handle_message('{"job_id": "42", "dockerfile_reference": "http://localhost/Dockerfile"}')
assigned = coordinator.monitor_once()   # {worker_id: CoordinatorJob}
```

`Coordinator` also accepts a `consumer`: any object with a `consume_message()`
method that returns a JSON job message. Once `start()` has been called, the
coordinator reads from the consumer in a background thread.

`execservice.jobqueue.InMemoryQueue` is a thread-safe FIFO of `Job` objects. It
raises `QueueEmptyError` when `dequeue()` is called on an empty queue.

`execservice.database` holds the process-wide MongoDB client:
- `connect_mongodb` opens it.
- `get_collection` uses it, and raises `DatabaseNotConnectedError` before a
  connection exists.
- `disconnect_mongodb` closes it.

## What it does not do

- No message-broker client is included. The `execservice` command starts a
  coordinator without a consumer, so that coordinator receives no jobs. Jobs
  reach a coordinator only through `handle_message` or through a consumer
  object that you supply.
- `ScheduledJob` is only a document schema. Nothing runs jobs on a schedule or
  reads cron expressions.
- The coordinator role is fixed by configuration. Nodes do not elect one.

## Tests

```
pip install .[test]
pytest
```