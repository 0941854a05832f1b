from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "intake"
    db_username: str = "intake"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    blob_backend: str = "local"
    blob_files_root: str = "/app/files"
    blob_http_base_url: str = ""
    blob_upload_timeout_seconds: int = 30

    ocr_queue_name: str = "ocr_processing"
    classification_queue_name: str = "document_classification"
    ledger_queue_name: str = "ledger_posting"
    max_job_attempts: int = 3

    pdf_engine: str = "pdfplumber"

    webhook_signing_secret: str = ""

    sweep_interval_seconds: int = 60
    sweep_batch_size: int = 50
    max_auto_retries: int = 3
    auto_retry_backoff_seconds: int = 300
