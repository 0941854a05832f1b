from dataclasses import dataclass

from intake.config.settings import Settings
from intake.database.models import JobRecord
from intake.database.repositories.documents_repository import DocumentsRepository
from intake.database.repositories.job_repository import JobRepository
from intake.database.repositories.stage_transitions_repository import (
    StageTransitionsRepository,
)
from intake.logging.logger import Log
from intake.workflow.exceptions import IntakeError, StaleTransitionError
from intake.workflow.ledger import StageTransitionLedger
from intake.workflow.models import DocumentStatus, ProcessingStage
from intake.workflow.retry import RetryService

AUTO_RETRY_ACTOR = "scheduler"
AUTO_RETRY_REASON = "auto_retry"


@dataclass
class SweepReport:
    """Counts from one recovery sweep."""

    failures_recorded: int = 0
    failures_acknowledged: int = 0
    retries_queued: int = 0
    retries_skipped: int = 0


class RecoverySweep:
    """Moves documents whose pipeline jobs died into error and re-queues errored ones.

    Workers mark a job failed once it has used all of its attempts. The sweep
    records that as an ERROR transition on the document, but only while the
    document still sits at the stage the job belonged to. Documents in error
    are then retried after a backoff, up to a fixed number of retries.
    """

    def __init__(
        self,
        doc_repo: DocumentsRepository,
        transitions_repo: StageTransitionsRepository,
        job_repo: JobRepository,
        ledger: StageTransitionLedger,
        retry_service: RetryService,
        settings: Settings,
    ) -> None:
        self._doc_repo = doc_repo
        self._transitions_repo = transitions_repo
        self._job_repo = job_repo
        self._ledger = ledger
        self._retry_service = retry_service
        self._settings = settings

    def _queue_stages(self) -> dict[str, ProcessingStage]:
        return {
            self._settings.ocr_queue_name: ProcessingStage.OCR,
            self._settings.classification_queue_name: ProcessingStage.CLASSIFICATION,
            self._settings.ledger_queue_name: ProcessingStage.LEDGER_POSTING,
        }

    def run_once(self) -> SweepReport:
        report = SweepReport()
        self._record_failed_jobs(report)
        self._retry_errored_documents(report)
        Log.info(
            f"Recovery sweep: {report.failures_recorded} failures recorded, "
            f"{report.retries_queued} retries queued, "
            f"{report.retries_skipped} retries skipped"
        )
        return report

    def _record_failed_jobs(self, report: SweepReport) -> None:
        stages = self._queue_stages()
        for job in self._job_repo.find_unacknowledged_failures(self._settings.sweep_batch_size):
            stage = stages.get(job.queue_name)
            if stage is not None and job.document_id is not None:
                if self._record_failure(job, stage):
                    report.failures_recorded += 1
            self._job_repo.acknowledge(job.id)
            report.failures_acknowledged += 1

    def _record_failure(self, job: JobRecord, stage: ProcessingStage) -> bool:
        document = self._doc_repo.find_for_job(job.document_id)
        if document is None:
            Log.warning(f"Failed job {job.id} references missing document {job.document_id}")
            return False

        try:
            self._ledger.record_transition(
                document.id,
                document.tenant_id,
                DocumentStatus.ERROR,
                trigger=f"{job.queue_name}_job_failed",
                metadata={"failedJobId": job.id, "attempts": job.attempts},
                error_message=job.error_message or f"{stage.value} job failed",
                expected_stage=stage,
                expected_job_id=job.id,
            )
        except StaleTransitionError as exc:
            # The document moved on or was re-queued after this job was published.
            Log.debug(f"Failed job {job.id} is stale: {exc}")
            return False
        Log.warning(f"Document {document.id} failed at {stage.value}: {job.error_message}")
        return True

    def _retry_errored_documents(self, report: SweepReport) -> None:
        candidates = self._doc_repo.find_retry_candidates(
            self._settings.auto_retry_backoff_seconds,
            self._settings.sweep_batch_size,
        )
        for document in candidates:
            retries = self._transitions_repo.count_retries(document.id, document.tenant_id)
            if retries >= self._settings.max_auto_retries:
                report.retries_skipped += 1
                continue
            try:
                self._retry_service.retry(
                    document.id,
                    document.tenant_id,
                    actor=AUTO_RETRY_ACTOR,
                    reason=AUTO_RETRY_REASON,
                )
            except IntakeError as exc:
                Log.warning(f"Auto-retry of document {document.id} failed: {exc}")
                report.retries_skipped += 1
                continue
            report.retries_queued += 1
