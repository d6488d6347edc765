"""Tests for Gmail credential loading, without real Google credentials."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

from triage.mailbox.credentials import DEFAULT_GMAIL_SCOPES, get_gmail_credentials, get_gmail_service


class TestGetGmailCredentials:
    def test_requests_modify_scope(self) -> None:
        assert DEFAULT_GMAIL_SCOPES == ["https://www.googleapis.com/auth/gmail.modify"]

    @patch("triage.mailbox.credentials.Credentials.from_authorized_user_file")
    def test_valid_token_is_returned_unchanged(self, mock_from_file: MagicMock, tmp_path: Path):
        token_path = tmp_path / "token.json"
        token_path.write_text("{}")
        mock_creds = MagicMock(valid=True)
        mock_from_file.return_value = mock_creds

        result = get_gmail_credentials(token_path=token_path)

        mock_from_file.assert_called_once_with(str(token_path), DEFAULT_GMAIL_SCOPES)
        assert result is mock_creds
        assert token_path.read_text() == "{}"

    @patch("triage.mailbox.credentials.Credentials.from_authorized_user_file")
    def test_expired_token_is_refreshed_and_saved(self, mock_from_file: MagicMock, tmp_path: Path):
        token_path = tmp_path / "token.json"
        token_path.write_text("{}")
        mock_creds = MagicMock(valid=False, expired=True, refresh_token="refresh-token")
        mock_creds.to_json.return_value = '{"refreshed": true}'
        mock_from_file.return_value = mock_creds

        result = get_gmail_credentials(token_path=token_path)

        mock_creds.refresh.assert_called_once()
        assert result is mock_creds
        assert token_path.read_text() == '{"refreshed": true}'

    @patch("triage.mailbox.credentials.InstalledAppFlow.from_client_secrets_file")
    def test_oauth_flow_without_token(self, mock_flow_cls: MagicMock, tmp_path: Path):
        token_path = tmp_path / "token.json"
        creds_path = tmp_path / "credentials.json"
        mock_creds = MagicMock()
        mock_creds.to_json.return_value = '{"token": "new"}'
        mock_flow_cls.return_value.run_local_server.return_value = mock_creds

        result = get_gmail_credentials(token_path=token_path, credentials_path=creds_path)

        mock_flow_cls.assert_called_once_with(str(creds_path), DEFAULT_GMAIL_SCOPES)
        assert result is mock_creds
        assert token_path.read_text() == '{"token": "new"}'


class TestGetGmailService:
    @patch("triage.mailbox.credentials.build")
    @patch("triage.mailbox.credentials.get_gmail_credentials")
    def test_builds_gmail_v1(self, mock_get_creds: MagicMock, mock_build: MagicMock):
        mock_get_creds.return_value = MagicMock()

        service = get_gmail_service("tok.json", "creds.json")

        mock_get_creds.assert_called_once_with("tok.json", "creds.json")
        mock_build.assert_called_once_with("gmail", "v1", credentials=mock_get_creds.return_value)
        assert service is mock_build.return_value
