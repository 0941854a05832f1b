from dataclasses import dataclass

from intake.config.settings import Settings
from intake.credentials.base import BaseCredentialVerifier
from intake.credentials.database_verifier import DatabaseCredentialVerifier
from intake.database.repositories.api_keys_repository import ApiKeysRepository
from intake.database.repositories.documents_repository import DocumentsRepository
from intake.database.repositories.email_aliases_repository import EmailAliasesRepository
from intake.database.repositories.ingestion_log_repository import IngestionLogRepository
from intake.database.repositories.ingestion_rules_repository import IngestionRulesRepository
from intake.database.repositories.job_repository import JobRepository
from intake.database.repositories.stage_transitions_repository import (
    StageTransitionsRepository,
)
from intake.ingestion.aliases import EmailAliasResolver
from intake.ingestion.csv_ingestion import CsvIngestionService
from intake.ingestion.email_ingestion import EmailIngestionService
from intake.ingestion.pipeline import AttachmentIngestor, DeliveryProcessor
from intake.ingestion.rules import IngestionRulesService
from intake.ingestion.signatures import WebhookSignatureVerifier
from intake.ingestion.upload_ingestion import UploadIngestionService
from intake.ingestion.webhook_ingestion import WebhookIngestionService
from intake.pdf.factory import PdfInspectorFactory
from intake.quality.scorer import QualityAssessor
from intake.queue.publisher import PipelineJobs, PostgresJobPublisher
from intake.storage.base import BaseBlobStore
from intake.storage.factory import BlobStoreFactory
from intake.workflow.ledger import StageTransitionLedger
from intake.workflow.retry import RetryService
from intake.worker.job_runner import JobRunner
from intake.worker.sweeper import RecoverySweep


@dataclass
class IntakeServices:
    """Explicitly constructed services shared by the API and the scheduler."""

    documents: DocumentsRepository
    ledger: StageTransitionLedger
    email: EmailIngestionService
    webhook: WebhookIngestionService
    upload: UploadIngestionService
    csv: CsvIngestionService
    retry: RetryService
    sweep: RecoverySweep
    runner: JobRunner
    credentials: BaseCredentialVerifier


def build_intake_services(
    settings: Settings,
    blob_store: BaseBlobStore | None = None,
) -> IntakeServices:
    """Build all intake services with their adapters from settings."""
    doc_repo = DocumentsRepository()
    transitions_repo = StageTransitionsRepository()
    log_repo = IngestionLogRepository()
    job_repo = JobRepository(settings.max_job_attempts)

    ledger = StageTransitionLedger(doc_repo, transitions_repo)
    jobs = PipelineJobs(PostgresJobPublisher(job_repo), settings)
    store = blob_store if blob_store is not None else BlobStoreFactory.create(settings)

    attachment_ingestor = AttachmentIngestor(doc_repo, ledger, store, jobs, settings)
    processor = DeliveryProcessor(log_repo, attachment_ingestor)
    assessor = QualityAssessor(PdfInspectorFactory.create(settings))
    retry = RetryService(doc_repo, ledger, jobs)
    rules = IngestionRulesService(IngestionRulesRepository())

    return IntakeServices(
        documents=doc_repo,
        ledger=ledger,
        email=EmailIngestionService(
            processor, EmailAliasResolver(EmailAliasesRepository()), rules
        ),
        webhook=WebhookIngestionService(
            processor, WebhookSignatureVerifier(settings.webhook_signing_secret), rules
        ),
        upload=UploadIngestionService(processor, assessor),
        csv=CsvIngestionService(processor, rules),
        retry=retry,
        sweep=RecoverySweep(doc_repo, transitions_repo, job_repo, ledger, retry, settings),
        runner=JobRunner(job_repo, settings),
        credentials=DatabaseCredentialVerifier(ApiKeysRepository()),
    )
