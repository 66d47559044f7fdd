"""
Job Lifecycle Model
Four-state job status shared by every provider, plus the tracker that keeps
reported states monotonic and terminal polls idempotent
"""

from collections import OrderedDict
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel


class JobStatus(str, Enum):
    """Lifecycle of one external job"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}

StatusTable = Mapping[str, JobStatus]


def fold_status(raw: Any) -> str:
    """Canonical lookup key for a provider status string"""
    if raw is None:
        return ""
    return str(raw).strip().lower().replace("-", "_").replace(" ", "_")


def normalize_status(raw: Any, table: StatusTable) -> JobStatus:
    """Map a provider status string onto the shared four-state model.

    Lookup is case-insensitive on the trimmed string. Anything the table does
    not know about, including a missing status, is treated as still running.
    """
    return table.get(fold_status(raw), JobStatus.PROCESSING)


def build_status_table(**groups: Tuple[str, ...]) -> Dict[str, JobStatus]:
    """Build a status table from ``completed=(...), failed=(...)`` style groups"""
    table: Dict[str, JobStatus] = {}
    for status_name, raw_values in groups.items():
        status = JobStatus(status_name)
        for raw in raw_values:
            table[fold_status(raw)] = status
    return table


class JobStateTracker:
    """Remembers what has been reported for each (provider, job_id).

    A poll can never report a state ranked below one already reported, and
    once the provider has reported a terminal state the stored result is
    served again for every later poll. Results flagged ``transient`` (the
    poll itself failed) pass through unrecorded. At most ``max_jobs`` jobs are
    remembered; the least recently recorded ones are dropped first.
    """

    def __init__(self, max_jobs: int = 1000):
        self.max_jobs = max_jobs
        self._reported: "OrderedDict[Tuple[str, str], JobStatus]" = OrderedDict()
        self._terminal: Dict[Tuple[str, str], BaseModel] = {}

    def __len__(self) -> int:
        return len(self._reported)

    def cached(self, provider: str, job_id: str) -> Optional[BaseModel]:
        """Get the stored terminal result for a job, if any"""
        return self._terminal.get((provider, job_id))

    def last_status(self, provider: str, job_id: str) -> Optional[JobStatus]:
        return self._reported.get((provider, job_id))

    def record(self, provider: str, job_id: str, result: BaseModel) -> BaseModel:
        """Record a freshly polled result and return what should be reported"""
        key = (provider, job_id)
        if key in self._terminal:
            return self._terminal[key]

        if getattr(result, "transient", False):
            return result

        status = JobStatus(result.status)
        previous = self._reported.get(key)
        if previous is not None and _RANK[status] < _RANK[previous]:
            result = result.model_copy(update={"status": previous})
            status = previous

        self._reported[key] = status
        self._reported.move_to_end(key)
        if status.is_terminal:
            self._terminal[key] = result

        while len(self._reported) > self.max_jobs:
            oldest, _ = self._reported.popitem(last=False)
            self._terminal.pop(oldest, None)
        return result

    def forget(self, provider: str, job_id: str) -> None:
        self._reported.pop((provider, job_id), None)
        self._terminal.pop((provider, job_id), None)
