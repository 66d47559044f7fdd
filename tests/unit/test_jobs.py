"""
Unit tests for the shared job lifecycle
Status normalization tables and the monotonic job state tracker
"""
import pytest

from ai_music.core.jobs import (
    JobStateTracker,
    JobStatus,
    build_status_table,
    fold_status,
    normalize_status,
)
from ai_music.services.mastering import AI_MASTERING_STATUS_TABLE, LANDR_STATUS_TABLE
from ai_music.services.providers import MusicGenerationResult
from ai_music.services.providers.fal import FAL_STATUS_TABLE
from ai_music.services.providers.goapi import GOAPI_STATUS_TABLE, PIAPI_STATUS_TABLE

ALL_TABLES = [
    GOAPI_STATUS_TABLE,
    PIAPI_STATUS_TABLE,
    FAL_STATUS_TABLE,
    AI_MASTERING_STATUS_TABLE,
    LANDR_STATUS_TABLE,
]


@pytest.mark.unit
class TestStatusNormalization:
    """Test provider vocabularies fold onto four states"""

    def test_fold_status(self):
        assert fold_status("  In-Progress ") == "in_progress"
        assert fold_status("IN QUEUE") == "in_queue"
        assert fold_status(None) == ""

    @pytest.mark.parametrize("table", ALL_TABLES)
    def test_unknown_status_is_processing(self, table):
        assert normalize_status("warming_up", table) == JobStatus.PROCESSING
        assert normalize_status(None, table) == JobStatus.PROCESSING
        assert normalize_status("", table) == JobStatus.PROCESSING

    def test_goapi_vocabulary(self):
        assert normalize_status("SUCCEEDED", GOAPI_STATUS_TABLE) == JobStatus.COMPLETED
        assert normalize_status("success", GOAPI_STATUS_TABLE) == JobStatus.COMPLETED
        assert normalize_status("Error", GOAPI_STATUS_TABLE) == JobStatus.FAILED
        assert normalize_status("queued", GOAPI_STATUS_TABLE) == JobStatus.PENDING
        assert normalize_status("running", GOAPI_STATUS_TABLE) == JobStatus.PROCESSING

    def test_piapi_staged_is_pending(self):
        assert normalize_status("staged", PIAPI_STATUS_TABLE) == JobStatus.PENDING
        assert normalize_status("staged", GOAPI_STATUS_TABLE) == JobStatus.PROCESSING

    def test_fal_vocabulary(self):
        assert normalize_status("COMPLETED", FAL_STATUS_TABLE) == JobStatus.COMPLETED
        assert normalize_status("IN_QUEUE", FAL_STATUS_TABLE) == JobStatus.PENDING
        assert normalize_status("IN_PROGRESS", FAL_STATUS_TABLE) == JobStatus.PROCESSING
        assert normalize_status("ERROR", FAL_STATUS_TABLE) == JobStatus.FAILED

    def test_build_status_table_rejects_unknown_group(self):
        with pytest.raises(ValueError):
            build_status_table(cancelled=("cancelled",))


@pytest.mark.unit
class TestJobStateTracker:
    """Test monotonic reporting and terminal caching"""

    def _result(self, status, **kwargs):
        return MusicGenerationResult(success=True, provider="fal", status=status, job_id="job-1", **kwargs)

    def test_regression_is_clamped(self):
        tracker = JobStateTracker()

        tracker.record("fal", "job-1", self._result(JobStatus.PROCESSING))
        reported = tracker.record("fal", "job-1", self._result(JobStatus.PENDING))

        assert reported.status == JobStatus.PROCESSING
        assert tracker.last_status("fal", "job-1") == JobStatus.PROCESSING

    def test_terminal_result_is_served_again(self):
        tracker = JobStateTracker()
        completed = self._result(JobStatus.COMPLETED, audio_urls=["https://cdn/a.mp3"])

        tracker.record("fal", "job-1", completed)
        again = tracker.record("fal", "job-1", self._result(JobStatus.PROCESSING))

        assert again.status == JobStatus.COMPLETED
        assert again.audio_urls == ["https://cdn/a.mp3"]
        assert tracker.cached("fal", "job-1") is completed

    def test_jobs_are_keyed_by_provider(self):
        tracker = JobStateTracker()
        tracker.record("fal", "job-1", self._result(JobStatus.COMPLETED))

        assert tracker.cached("suno", "job-1") is None

    def test_forget(self):
        tracker = JobStateTracker()
        tracker.record("fal", "job-1", self._result(JobStatus.FAILED))

        tracker.forget("fal", "job-1")

        assert tracker.cached("fal", "job-1") is None
        assert tracker.last_status("fal", "job-1") is None

    def test_transient_failure_is_not_recorded(self):
        tracker = JobStateTracker()
        tracker.record("fal", "job-1", self._result(JobStatus.PROCESSING))
        poll_error = MusicGenerationResult.failure("fal", "Failed to check Fal.ai status: 502", job_id="job-1")
        poll_error.transient = True

        reported = tracker.record("fal", "job-1", poll_error)

        assert reported is poll_error
        assert tracker.cached("fal", "job-1") is None
        assert tracker.last_status("fal", "job-1") == JobStatus.PROCESSING

    def test_oldest_jobs_are_dropped_past_the_limit(self):
        tracker = JobStateTracker(max_jobs=2)

        for job_id in ("job-1", "job-2", "job-3"):
            tracker.record("fal", job_id, self._result(JobStatus.COMPLETED))

        assert len(tracker) == 2
        assert tracker.cached("fal", "job-1") is None
        assert tracker.cached("fal", "job-3") is not None
