"""Document schemas for scheduled and executed jobs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId

# The zero value of a timestamp that has not been set.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


@dataclass
class ScheduledJob:
    """A job waiting to be run, possibly on a cron schedule."""

    job_id: str = ""
    dockerfile_reference: str = ""
    scheduled_time: datetime = ZERO_TIME
    cron_expression: str = ""
    id: ObjectId | None = None

    def to_document(self) -> dict[str, Any]:
        """Return the MongoDB document for this job; ``_id`` is left out when unset."""
        document: dict[str, Any] = {}
        if self.id is not None:
            document["_id"] = self.id
        document.update(
            job_id=self.job_id,
            dockerfile_reference=self.dockerfile_reference,
            scheduled_time=self.scheduled_time,
            cronexpression=self.cron_expression,
        )
        return document


@dataclass
class ExecutedJob:
    """The record of a job that has finished running."""

    job_id: str = ""
    dockerfile_reference: str = ""
    scheduled_time: datetime = ZERO_TIME
    execution_completion_time: datetime = ZERO_TIME
    status: str = ""
    error_message: str = ""
    id: ObjectId | None = None

    def to_document(self) -> dict[str, Any]:
        """Return the MongoDB document for this record; ``_id`` is left out when unset."""
        document: dict[str, Any] = {}
        if self.id is not None:
            document["_id"] = self.id
        document.update(
            job_id=self.job_id,
            dockerfile_reference=self.dockerfile_reference,
            scheduled_time=self.scheduled_time,
            execution_completion_time=self.execution_completion_time,
            status=self.status,
            error_message=self.error_message,
        )
        return document