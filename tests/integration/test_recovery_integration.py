from collections.abc import Callable

import pytest

from intake.config.settings import Settings
from intake.database.connection import get_connection
from intake.database.models import DocumentRecord, JobRecord
from intake.database.repositories.job_repository import JobRepository
from intake.services import IntakeServices
from intake.workflow.models import DocumentStatus


@pytest.mark.integration
class TestRetryIntegration:
    def test_errored_document_is_requeued_for_ocr(
        self,
        services: IntakeServices,
        seed_document: DocumentRecord,
        count_jobs: Callable[[str, str], int],
    ) -> None:
        services.ledger.record_transition(
            seed_document.id,
            seed_document.tenant_id,
            DocumentStatus.ERROR,
            trigger="ocr_processing_job_failed",
            error_message="OCR engine crashed",
        )

        services.retry.retry(seed_document.id, seed_document.tenant_id, actor="user-7")

        document = services.documents.find_by_id(seed_document.id, seed_document.tenant_id)
        history = services.ledger.get_history(seed_document.id, seed_document.tenant_id)
        assert document.status == "processing"
        assert document.error_message is None
        assert history[-1].trigger == "retry_ocr"
        assert history[-1].metadata["actor"] == "user-7"
        assert count_jobs(seed_document.id, "ocr_processing") == 1

    def test_document_with_text_is_requeued_for_classification(
        self,
        services: IntakeServices,
        seed_document: DocumentRecord,
        count_jobs: Callable[[str, str], int],
    ) -> None:
        services.documents.update_extracted_data(
            seed_document.id, seed_document.tenant_id, {"rawText": "Total due 120.00"}
        )
        services.ledger.record_transition(
            seed_document.id, seed_document.tenant_id, DocumentStatus.ERROR, trigger="classification_failed"
        )

        services.retry.retry(seed_document.id, seed_document.tenant_id)

        document = services.documents.find_by_id(seed_document.id, seed_document.tenant_id)
        assert document.status == "extracted"
        assert count_jobs(seed_document.id, "document_classification") == 1


@pytest.mark.integration
class TestRecoverySweepIntegration:
    def test_failed_job_moves_document_to_error(
        self,
        services: IntakeServices,
        seed_document: DocumentRecord,
        test_settings: Settings,
    ) -> None:
        job_repo = JobRepository(test_settings.max_job_attempts)
        job_id = job_repo.enqueue(test_settings.ocr_queue_name, {"documentId": seed_document.id})
        services.ledger.record_transition(
            seed_document.id,
            seed_document.tenant_id,
            DocumentStatus.PROCESSING,
            trigger="ocr_enqueued",
            metadata={"jobId": job_id},
        )
        job_repo.mark_failed(job_id, "OCR engine crashed")

        services.sweep.run_once()

        document = services.documents.find_by_id(seed_document.id, seed_document.tenant_id)
        assert document.status == "error"
        assert document.error_message == "OCR engine crashed"
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT acknowledged_at FROM pipeline_jobs WHERE id = %s", (job_id,))
                row = cur.fetchone()
        assert row is not None and row[0] is not None

    def test_failure_of_job_replaced_by_retry_is_ignored(
        self,
        services: IntakeServices,
        seed_document: DocumentRecord,
        test_settings: Settings,
        count_jobs: Callable[[str, str], int],
    ) -> None:
        job_repo = JobRepository(test_settings.max_job_attempts)
        old_job_id = job_repo.enqueue(test_settings.ocr_queue_name, {"documentId": seed_document.id})
        services.ledger.record_transition(
            seed_document.id,
            seed_document.tenant_id,
            DocumentStatus.PROCESSING,
            trigger="ocr_enqueued",
            metadata={"jobId": old_job_id},
        )
        services.retry.retry(seed_document.id, seed_document.tenant_id, actor="user-7")
        job_repo.mark_failed(old_job_id, "OCR engine crashed")

        report = services.sweep.run_once()

        document = services.documents.find_by_id(seed_document.id, seed_document.tenant_id)
        history = services.ledger.get_history(seed_document.id, seed_document.tenant_id)
        assert report.failures_recorded == 0
        assert document.status == "processing"
        assert history[-1].trigger == "retry_ocr"
        assert count_jobs(seed_document.id, "ocr_processing") == 2


    def test_job_failing_every_attempt_moves_document_to_error(
        self,
        services: IntakeServices,
        seed_document: DocumentRecord,
        test_settings: Settings,
    ) -> None:
        job_repo = JobRepository(test_settings.max_job_attempts)
        services.retry.retry(seed_document.id, seed_document.tenant_id)
        job_id = services.ledger.get_history(seed_document.id, seed_document.tenant_id)[-1].metadata["jobId"]

        def crash(job: JobRecord) -> None:
            raise RuntimeError("OCR engine crashed")

        for _ in range(test_settings.max_job_attempts):
            services.runner.run_next(test_settings.ocr_queue_name, crash)

        job = job_repo.find_by_id(job_id)
        assert job is not None
        assert job.status == "failed"
        assert job.attempts == test_settings.max_job_attempts - 1

        report = services.sweep.run_once()

        document = services.documents.find_by_id(seed_document.id, seed_document.tenant_id)
        assert report.failures_recorded == 1
        assert document.status == "error"
        assert document.error_message == "OCR engine crashed"
