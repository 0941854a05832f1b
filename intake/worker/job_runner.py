from collections.abc import Callable

from intake.config.settings import Settings
from intake.database.connection import get_connection
from intake.database.models import JobRecord
from intake.database.repositories.job_repository import JobRepository
from intake.logging.logger import Log

JobHandler = Callable[[JobRecord], None]


class JobRunner:
    """Claim one job from a pipeline queue, run the stage handler, and settle the job.

    Stage workers (OCR, classification, ledger posting) plug their handler in
    here. A job that keeps failing ends up ``failed`` and is picked up by the
    recovery sweep, which moves its document to ``error``.
    """

    def __init__(self, job_repo: JobRepository, settings: Settings) -> None:
        self._job_repo = job_repo
        self._settings = settings

    def run_next(self, queue_name: str, handler: JobHandler) -> JobRecord | None:
        """Run the oldest pending job on a queue. Returns None when the queue is empty."""
        job = self._try_claim_job(queue_name)
        if job is None:
            Log.debug(f"No jobs available on {queue_name}")
            return None
        self.run(job, handler)
        return job

    def run(self, job: JobRecord, handler: JobHandler) -> None:
        Log.info(f"Running {job.queue_name} job {job.id} (attempt {job.attempts + 1})")
        try:
            handler(job)
        except Exception as exc:
            self._handle_failure(job, exc)
            return
        self._job_repo.mark_done(job.id)
        Log.info(f"Job {job.id} completed", document=job.document_id)

    def _try_claim_job(self, queue_name: str) -> JobRecord | None:
        try:
            with get_connection() as conn:
                return self._job_repo.claim_next_job(conn, queue_name)
        except Exception as exc:
            Log.warning(f"Database error while claiming from {queue_name}, will retry: {exc}")
            return None

    def _handle_failure(self, job: JobRecord, exc: Exception) -> None:
        """Back to pending below the attempt limit, otherwise failed for good."""
        Log.error(f"Job {job.id} failed: {exc}", document=job.document_id)
        if job.attempts + 1 >= self._settings.max_job_attempts:
            self._job_repo.mark_failed(job.id, str(exc))
            Log.error(f"Job {job.id} permanently failed after {job.attempts + 1} attempts")
        else:
            self._job_repo.increment_attempts(job.id)
            Log.warning(f"Job {job.id} will be retried (attempt {job.attempts + 2})")
