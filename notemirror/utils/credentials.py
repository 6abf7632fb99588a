"""Secure credential storage using system keyring."""

import logging

import keyring
import keyring.errors

logger = logging.getLogger(__name__)

# Keyring service name for noteMirror
SERVICE_NAME = "noteMirror"


class CredentialStore:
    """Manages secure storage of the Drive refresh token and GitHub token."""

    def __init__(self, service_name: str = SERVICE_NAME):
        """
        Initialize credential store.

        Args:
            service_name: Name of the service in keyring (default: "noteMirror")
        """
        self.service_name = service_name

    def _set(self, key: str, secret: str) -> None:
        try:
            keyring.set_password(self.service_name, key, secret)
            logger.info(f"Stored credential: {key}")
        except Exception as e:
            logger.error(f"Failed to store credential {key}: {e}")
            raise

    def _get(self, key: str) -> str | None:
        try:
            secret = keyring.get_password(self.service_name, key)
            if secret:
                logger.debug(f"Retrieved credential: {key}")
            else:
                logger.debug(f"No credential found: {key}")
            return secret
        except Exception as e:
            logger.error(f"Failed to retrieve credential {key}: {e}")
            return None

    def _delete(self, key: str) -> bool:
        try:
            keyring.delete_password(self.service_name, key)
            logger.info(f"Deleted credential: {key}")
            return True
        except keyring.errors.PasswordDeleteError:
            logger.warning(f"No credential found to delete: {key}")
            return False
        except Exception as e:
            logger.error(f"Failed to delete credential {key}: {e}")
            return False

    def set_github_token(self, repo_owner: str, token: str) -> None:
        """Store a GitHub token for the repository owner."""
        self._set(f"github:{repo_owner}", token)

    def get_github_token(self, repo_owner: str) -> str | None:
        """Retrieve the GitHub token for the repository owner."""
        return self._get(f"github:{repo_owner}")

    def delete_github_token(self, repo_owner: str) -> bool:
        """Delete the stored GitHub token."""
        return self._delete(f"github:{repo_owner}")

    def set_drive_refresh_token(self, client_id: str, token: str) -> None:
        """Store a Google OAuth refresh token for the client ID."""
        self._set(f"drive:{client_id}", token)

    def get_drive_refresh_token(self, client_id: str) -> str | None:
        """Retrieve the Google OAuth refresh token for the client ID."""
        return self._get(f"drive:{client_id}")

    def delete_drive_refresh_token(self, client_id: str) -> bool:
        """Delete the stored Google OAuth refresh token."""
        return self._delete(f"drive:{client_id}")
