from abc import ABC, abstractmethod
from typing import Any

import psycopg

from intake.config.settings import Settings
from intake.database.repositories.job_repository import JobRepository
from intake.logging.logger import Log
from intake.workflow.exceptions import JobPublishError


class BaseJobPublisher(ABC):
    """Contract for handing work items to out-of-process pipeline workers."""

    @abstractmethod
    def publish(
        self,
        queue_name: str,
        payload: dict[str, Any],
        persistent: bool = True,
    ) -> int:
        """Publish one job with at-least-once delivery and return its queue id.

        Raises:
            JobPublishError: if the job could not be handed to the queue.
        """


class PostgresJobPublisher(BaseJobPublisher):
    """Durable queue backed by the pipeline_jobs table."""

    def __init__(self, job_repo: JobRepository) -> None:
        self._job_repo = job_repo

    def publish(
        self,
        queue_name: str,
        payload: dict[str, Any],
        persistent: bool = True,
    ) -> int:
        try:
            job_id = self._job_repo.enqueue(queue_name, payload, persistent=persistent)
        except psycopg.Error as exc:
            raise JobPublishError(f"Failed to publish job to {queue_name}: {exc}") from exc
        Log.debug(f"Published job {job_id} to {queue_name}")
        return job_id


class PipelineJobs:
    """Stage-specific job payloads published to the configured queues."""

    def __init__(self, publisher: BaseJobPublisher, settings: Settings) -> None:
        self._publisher = publisher
        self._settings = settings

    def publish_ocr_job(
        self,
        document_id: str,
        storage_key: str,
        headers: dict[str, str] | None = None,
    ) -> int:
        return self._publisher.publish(
            self._settings.ocr_queue_name,
            {"documentId": document_id, "storageKey": storage_key, "headers": headers or {}},
        )

    def publish_classification_job(self, document_id: str, extracted_text: str) -> int:
        return self._publisher.publish(
            self._settings.classification_queue_name,
            {"documentId": document_id, "extractedText": extracted_text},
        )

    def publish_ledger_job(self, document_id: str, reason: str) -> int:
        return self._publisher.publish(
            self._settings.ledger_queue_name,
            {"documentId": document_id, "reason": reason},
        )
