"""
Google OAuth credentials shared by the Sheets record store and the Drive
object store.
"""

import os
import logging
from pathlib import Path
from typing import Optional

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from google.auth.transport.requests import Request

logger = logging.getLogger(__name__)

SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive.file'
]

DEFAULT_CREDENTIALS_PATH = Path.home() / '.config' / 'kyc-contracts' / 'google-credentials.json'
DEFAULT_TOKEN_PATH = Path.home() / '.config' / 'kyc-contracts' / 'google-token.json'


def credentials_configured() -> bool:
    """True if either a saved token or an OAuth client file is present"""
    return _token_path().exists() or _credentials_path().exists()


def _credentials_path() -> Path:
    return Path(os.environ.get('GDRIVE_CREDENTIALS_PATH', DEFAULT_CREDENTIALS_PATH))


def _token_path() -> Path:
    return Path(os.environ.get('GDRIVE_TOKEN_PATH', DEFAULT_TOKEN_PATH))


def load_credentials() -> Optional[Credentials]:
    """
    Load Google OAuth credentials.

    Uses the saved token when valid, refreshes it when expired, and only
    falls back to the interactive OAuth flow when a client secrets file
    exists. Returns None when no credentials can be obtained.
    """
    creds_path = _credentials_path()
    token_path = _token_path()
    creds = None

    if token_path.exists():
        try:
            creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
            logger.info(f"Loaded existing token from {token_path}")
        except Exception as e:
            logger.warning(f"Failed to load existing token: {e}")

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
            logger.info("Refreshed expired token")
        except Exception as e:
            logger.warning(f"Failed to refresh token: {e}")
            creds = None

    if not creds:
        if not creds_path.exists():
            logger.warning(f"No credentials file at {creds_path}")
            return None

        try:
            flow = InstalledAppFlow.from_client_secrets_file(str(creds_path), SCOPES)
            creds = flow.run_local_server(port=0)
            logger.info("Completed OAuth flow successfully")
        except Exception as e:
            logger.error(f"OAuth flow failed: {e}")
            return None

    try:
        token_path.parent.mkdir(parents=True, exist_ok=True)
        token_path.write_text(creds.to_json())
        logger.info(f"Saved token to {token_path}")
    except OSError as e:
        logger.warning(f"Failed to save token: {e}")

    return creds


def demo_mode_enabled() -> bool:
    """DEMO_MODE env flag; defaults to on"""
    return os.environ.get('DEMO_MODE', 'true').lower() == 'true'
