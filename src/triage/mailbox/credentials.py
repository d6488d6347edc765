"""Gmail OAuth2 credential loading and service construction.

Provides helpers for:
- Loading/refreshing Gmail OAuth2 credentials from token.json
- Building the Gmail API service client
"""

from __future__ import annotations

from pathlib import Path

import google.auth.transport.requests
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow  # type: ignore[import-untyped]
from googleapiclient.discovery import Resource, build

# gmail.modify covers label changes plus trash/untrash
DEFAULT_GMAIL_SCOPES: list[str] = [
    "https://www.googleapis.com/auth/gmail.modify",
]


def get_gmail_credentials(
    token_path: str | Path = "token.json",
    credentials_path: str | Path = "credentials.json",
    scopes: list[str] | None = None,
) -> Credentials:
    """Load Gmail OAuth2 credentials, refreshing or creating as needed.

    If ``token_path`` holds valid (or refreshable) credentials they are used
    directly; otherwise an interactive OAuth2 flow is started.  The result is
    written back to ``token_path``.

    Args:
        token_path: Path to the cached OAuth2 token file.
        credentials_path: Path to the OAuth2 client-secrets file.
        scopes: OAuth2 scopes to request.  Defaults to ``DEFAULT_GMAIL_SCOPES``.

    Returns:
        A ``google.oauth2.credentials.Credentials`` instance ready for API calls.
    """
    if scopes is None:
        scopes = DEFAULT_GMAIL_SCOPES

    token_path = Path(token_path)
    creds: Credentials | None = None

    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), scopes)  # type: ignore[no-untyped-call]

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        creds.refresh(google.auth.transport.requests.Request())
    else:
        flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes)
        creds = flow.run_local_server(port=0)

    token_path.write_text(creds.to_json())
    return creds


def get_gmail_service(
    token_path: str | Path = "token.json",
    credentials_path: str | Path = "credentials.json",
) -> Resource:
    """Build and return a Gmail API v1 service client."""
    credentials = get_gmail_credentials(token_path, credentials_path)
    return build("gmail", "v1", credentials=credentials)
