"""Configuration management using Pydantic Settings."""

import logging
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class DriveConfig(BaseModel):
    """Configuration for the Google Drive note store."""

    client_id: str | None = None
    client_secret: str | None = None
    refresh_token: str | None = None
    notes_folder_id: str | None = None

    # "recursive" walks the whole tree, "flat" only reads category folders
    # directly under notes_folder_id.
    discovery_mode: str = "recursive"
    page_size: int = Field(default=100, ge=1, le=1000)
    concurrency: int = Field(default=4, ge=1, le=16)

    @field_validator("discovery_mode", mode="before")
    @classmethod
    def validate_discovery_mode(cls, v: str) -> str:
        """Validate discovery mode."""
        valid_modes = {"flat", "recursive"}
        v = v.lower()
        if v not in valid_modes:
            raise ValueError(f"Discovery mode must be one of: {', '.join(sorted(valid_modes))}")
        return v

    def get_refresh_token(self) -> str | None:
        """
        Get the OAuth refresh token from keyring or config.

        Priority:
        1. System keyring (if client_id is configured)
        2. Config/environment variable (fallback)
        """
        if self.client_id:
            try:
                from notemirror.utils.credentials import CredentialStore

                token = CredentialStore().get_drive_refresh_token(self.client_id)
                if token:
                    logger.debug("Using Drive refresh token from system keyring")
                    return token
            except Exception as e:
                logger.warning(f"Failed to retrieve refresh token from keyring: {e}")

        if self.refresh_token:
            logger.debug("Using Drive refresh token from config/environment")
            return self.refresh_token

        return None


class GitHubConfig(BaseModel):
    """Configuration for the GitHub backup repository."""

    token: str | None = None
    repo_owner: str | None = None
    repo_name: str | None = None
    default_branch: str = "main"
    author_name: str = "Notes Backup Bot"
    author_email: str = "notes-backup@automated.local"
    auth_remote: str = "auth-origin"
    # Overrides the github.com URL, e.g. for a self-hosted mirror.
    remote_url: str | None = None

    def get_token(self) -> str | None:
        """Get the GitHub token from keyring or config."""
        if self.repo_owner:
            try:
                from notemirror.utils.credentials import CredentialStore

                token = CredentialStore().get_github_token(self.repo_owner)
                if token:
                    logger.debug("Using GitHub token from system keyring")
                    return token
            except Exception as e:
                logger.warning(f"Failed to retrieve GitHub token from keyring: {e}")

        return self.token

    @property
    def repo_url(self) -> str:
        """Plain clone URL for the backup repository."""
        if self.remote_url:
            return self.remote_url
        return f"https://github.com/{self.repo_owner}/{self.repo_name}.git"

    @property
    def authenticated_url(self) -> str | None:
        """Clone URL with the token embedded, or None without a token."""
        token = self.get_token()
        if not token:
            return None
        if self.remote_url:
            scheme, sep, rest = self.remote_url.partition("://")
            if not sep:
                return self.remote_url
            return f"{scheme}://{token}@{rest}"
        return f"https://{token}@github.com/{self.repo_owner}/{self.repo_name}.git"


class BackupConfig(BaseModel):
    """Configuration for the scheduled backup job."""

    enabled: bool = True
    work_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "notes-backup"
    )
    stale_after_days: float = 7
    cron: str = "0 3 * * *"
    timezone: str = "America/New_York"

    @field_validator("work_dir", mode="before")
    @classmethod
    def expand_work_dir(cls, v: str | Path) -> Path:
        """Expand user home directory in the working copy path."""
        return Path(v).expanduser().resolve()


class ApiConfig(BaseModel):
    """Configuration for the HTTP API."""

    api_key: str | None = None
    host: str = "0.0.0.0"
    port: int = 8080
    max_content_bytes: int = 2 * 1024 * 1024
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 15 * 60


class GeneralConfig(BaseModel):
    """General application configuration."""

    log_level: str = "INFO"
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".notemirror"
    )
    log_file_name: str = "notemirror.log"
    log_file_max_bytes: int = 5 * 1024 * 1024
    log_file_backup_count: int = 3
    log_overrides: dict[str, str] = Field(default_factory=dict)
    # Runtime metadata - not serialized to config file
    config_file: Path | None = Field(default=None, exclude=True)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand user home directory in data directory path."""
        return Path(v).expanduser().resolve()


class AppConfig(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="NOTEMIRROR_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    drive: DriveConfig = Field(default_factory=DriveConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from a TOML file."""
        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            return cls()

        import tomllib

        with open(config_path, "rb") as f:
            config_dict = tomllib.load(f)

        return cls(**config_dict)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to a TOML file."""
        import tomli_w

        config_path.parent.mkdir(parents=True, exist_ok=True)

        # Convert to dict, handling Path objects and excluding None values
        config_dict = self.model_dump(mode="json", exclude_none=True)

        with open(config_path, "wb") as f:
            tomli_w.dump(config_dict, f)

        logger.info(f"Configuration saved to {config_path}")

    def ensure_data_dir(self) -> None:
        """Ensure data directory exists."""
        self.general.data_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Data directory: {self.general.data_dir}")

    def missing_required(self) -> list[str]:
        """Return the names of required settings that are not set."""
        required = {
            "drive.client_id": self.drive.client_id,
            "drive.client_secret": self.drive.client_secret,
            "drive.refresh_token": self.drive.get_refresh_token(),
            "drive.notes_folder_id": self.drive.notes_folder_id,
            "github.token": self.github.get_token(),
            "github.repo_owner": self.github.repo_owner or self.github.remote_url,
            "github.repo_name": self.github.repo_name or self.github.remote_url,
        }
        return [name for name, value in required.items() if not value]

    @property
    def backup_logs_db_path(self) -> Path:
        """Path to the backup run history database."""
        return self.general.data_dir / "backup_logs.db"

    @property
    def default_config_path(self) -> Path:
        """Get default configuration file path."""
        return self.general.data_dir / "config.toml"


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from file or create default."""
    if config_path is None:
        config = AppConfig()
        config_path = config.default_config_path

    if config_path.exists():
        config = AppConfig.load_from_file(config_path)
    else:
        config = AppConfig()

    config.general.config_file = config_path
    return config
