import os
import uuid
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from intake.config.settings import Settings
from intake.database.connection import apply_schema, close_pool, get_connection, init_pool
from intake.database.models import DocumentRecord
from intake.database.repositories.documents_repository import DocumentsRepository
from intake.services import IntakeServices, build_intake_services
from intake.storage.local import LocalBlobStore


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "intake_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        apply_schema()
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a database the tests may create tables in"
        )
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def tenant_id(integration_pool: None) -> Generator[str, None, None]:
    """A fresh tenant whose rows are removed after the test."""
    tenant = f"test-{uuid.uuid4()}"
    yield tenant
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                DELETE FROM pipeline_jobs
                WHERE document_id IN (SELECT id FROM documents WHERE tenant_id = %s)
                """,
                (tenant,),
            )
            cur.execute("DELETE FROM document_stage_transitions WHERE tenant_id = %s", (tenant,))
            cur.execute("DELETE FROM documents WHERE tenant_id = %s", (tenant,))
            cur.execute("DELETE FROM ingestion_log WHERE tenant_id = %s", (tenant,))
            cur.execute("DELETE FROM tenant_api_keys WHERE tenant_id = %s", (tenant,))
            cur.execute("DELETE FROM email_aliases WHERE tenant_id = %s", (tenant,))
            cur.execute("DELETE FROM ingestion_rules WHERE tenant_id = %s", (tenant,))
        conn.commit()


@pytest.fixture
def email_alias(tenant_id: str) -> str:
    """An enabled inbound address owned by the test tenant."""
    address = f"inbox+{tenant_id}@tenant.example"
    with get_connection() as conn:
        conn.execute(
            "INSERT INTO email_aliases (tenant_id, alias_email) VALUES (%s, %s)",
            (tenant_id, address),
        )
        conn.commit()
    return address

@pytest.fixture
def services(test_settings: Settings, integration_pool: None, tmp_path: Path) -> IntakeServices:
    return build_intake_services(test_settings, blob_store=LocalBlobStore(files_root=tmp_path))


@pytest.fixture
def seed_document(tenant_id: str) -> DocumentRecord:
    """A document row at uploaded/document with a stored blob key."""
    document_id = str(uuid.uuid4())
    return DocumentsRepository().create(
        DocumentRecord(
            id=document_id,
            tenant_id=tenant_id,
            file_name="invoice.pdf",
            mime_type="application/pdf",
            byte_size=1024,
            status="uploaded",
            processing_stage="document",
            upload_source="dashboard",
            storage_key=f"uploads/{tenant_id}/{document_id}/invoice.pdf",
        )
    )


@pytest.fixture
def count_jobs(integration_pool: None) -> Callable[[str, str], int]:
    def _count(document_id: str, queue_name: str) -> int:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT COUNT(*) FROM pipeline_jobs WHERE document_id = %s AND queue_name = %s",
                    (document_id, queue_name),
                )
                row = cur.fetchone()
        return int(row[0]) if row is not None else 0

    return _count
