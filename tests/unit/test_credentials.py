import hashlib
from unittest.mock import MagicMock, patch

from intake.credentials.database_verifier import DatabaseCredentialVerifier
from intake.database.repositories.api_keys_repository import ApiKeysRepository, hash_api_key


class TestDatabaseCredentialVerifier:
    def test_missing_key(self) -> None:
        repo = MagicMock()

        result = DatabaseCredentialVerifier(repo).verify_api_key("")

        assert result.is_valid is False
        assert result.error == "Missing ingestion API key"
        repo.find_active_tenant.assert_not_called()

    def test_unknown_key(self) -> None:
        repo = MagicMock()
        repo.find_active_tenant.return_value = None

        result = DatabaseCredentialVerifier(repo).verify_api_key("ik_unknown")

        assert result.is_valid is False
        assert result.error == "Invalid API key"

    def test_valid_key_resolves_tenant(self) -> None:
        repo = MagicMock()
        repo.find_active_tenant.return_value = "tenant-1"

        result = DatabaseCredentialVerifier(repo).verify_api_key("ik_live")

        assert result.is_valid is True
        assert result.tenant_id == "tenant-1"


class TestApiKeysRepository:
    def test_hash_api_key_is_sha256(self) -> None:
        assert hash_api_key("ik_live") == hashlib.sha256(b"ik_live").hexdigest()

    @patch("intake.database.repositories.api_keys_repository.get_connection")
    def test_looks_up_hashed_key(self, mock_get_conn: MagicMock) -> None:
        mock_cursor = MagicMock()
        mock_conn = MagicMock()
        mock_conn.cursor.return_value.__enter__ = MagicMock(return_value=mock_cursor)
        mock_conn.cursor.return_value.__exit__ = MagicMock(return_value=False)
        mock_get_conn.return_value.__enter__ = MagicMock(return_value=mock_conn)
        mock_get_conn.return_value.__exit__ = MagicMock(return_value=False)
        mock_cursor.fetchone.return_value = ("tenant-1",)

        tenant_id = ApiKeysRepository().find_active_tenant("ik_live")

        assert tenant_id == "tenant-1"
        assert mock_cursor.execute.call_args.args[1] == (hash_api_key("ik_live"),)
