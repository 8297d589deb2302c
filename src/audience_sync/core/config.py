"""Configuration management for audience sync."""

import json
import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "AUDIENCE_SYNC_"
CONFIG_FILE_NAME = "config.json"
CONFIG_SEARCH_PATHS = [".", "./bin", "./configs"]


class MailchimpSettings(BaseModel):
    base_url: str = ""
    api_key: str = ""


class OmetriaSettings(BaseModel):
    endpoint: str = ""
    api_key: str = ""


class StateSettings(BaseModel):
    """Where the per-list watermarks are kept."""
    backend: Literal["redis", "firestore"] = "redis"
    redis_addr: str = "localhost:6379"
    redis_password: str = ""
    redis_db: int = 0
    key_prefix: str = "watermark:"
    firestore_project: Optional[str] = None
    firestore_collection: str = "sync_watermarks"


class SecretsSettings(BaseModel):
    project_id: Optional[str] = None


class SyncSettings(BaseModel):
    page_size: int = Field(900, ge=1, le=1000)
    # Mailchimp allows 10 concurrent connections per API key
    concurrency_limit: int = Field(9, ge=1, le=9)
    request_timeout_seconds: float = Field(30, gt=0)


class Settings(BaseModel):
    """Fully resolved settings, handed to the services as plain values."""
    mailchimp: MailchimpSettings = Field(default_factory=MailchimpSettings)
    ometria: OmetriaSettings = Field(default_factory=OmetriaSettings)
    state: StateSettings = Field(default_factory=StateSettings)
    secrets: SecretsSettings = Field(default_factory=SecretsSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    run_interval_seconds: int = Field(300, gt=0)
    log_level: str = "INFO"

    def missing_credentials(self) -> List[str]:
        """Names of the required values that are still empty."""
        required = {
            "mailchimp.base_url": self.mailchimp.base_url,
            "mailchimp.api_key": self.mailchimp.api_key,
            "ometria.endpoint": self.ometria.endpoint,
            "ometria.api_key": self.ometria.api_key,
        }
        return [name for name, value in required.items() if not value]


def setup_logging(level: str = "INFO") -> None:
    """Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def load_environment(env_file: Optional[str] = None) -> None:
    """Load environment variables from .env file.

    Args:
        env_file: Path to .env file. If None, looks for .env in current directory.
    """
    if env_file:
        env_path = Path(env_file)
    else:
        env_path = Path('.env')

    if env_path.exists():
        load_dotenv(env_path)
        logging.info(f"Loaded environment from {env_path}")
    else:
        logging.debug(f"No .env file found at {env_path}")


def find_config_file(config_file: Optional[str] = None) -> Optional[Path]:
    """Locate the JSON config file.

    Args:
        config_file: Explicit path. If None, the search paths are tried in order.

    Returns:
        Path of the file, or None when no config file exists

    Raises:
        ConfigurationError: If an explicit path does not exist
    """
    if config_file:
        path = Path(config_file)
        if not path.is_file():
            raise ConfigurationError(f"config file {path} does not exist")
        return path

    for directory in CONFIG_SEARCH_PATHS:
        path = Path(directory) / CONFIG_FILE_NAME
        if path.is_file():
            return path
    return None


def apply_env_overrides(data: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Override settings with AUDIENCE_SYNC_* environment variables.

    Nested values use AUDIENCE_SYNC_<SECTION>_<FIELD>, e.g.
    AUDIENCE_SYNC_MAILCHIMP_API_KEY; top-level ones AUDIENCE_SYNC_<FIELD>.
    """
    environ = os.environ if environ is None else environ

    for name, field in Settings.model_fields.items():
        annotation = field.annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            for sub_name in annotation.model_fields:
                value = environ.get(f"{ENV_PREFIX}{name}_{sub_name}".upper())
                if value is not None:
                    data.setdefault(name, {})[sub_name] = value
        else:
            value = environ.get(f"{ENV_PREFIX}{name}".upper())
            if value is not None:
                data[name] = value
    return data


def load_settings(config_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None,
                  secret_service: Optional[Any] = None) -> Settings:
    """Resolve settings from the config file, the environment and Secret Manager.

    Args:
        config_file: Optional explicit path to config.json
        environ: Environment mapping, defaults to os.environ
        secret_service: Pre-built SecretManagerService, mostly for tests

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If the file is unreadable, a value is invalid or
            a credential is missing
    """
    data: Dict[str, Any] = {}

    path = find_config_file(config_file)
    if path is not None:
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            raise ConfigurationError(
                f"unable to initialize configuration - make sure {path} exists and has content ({e})"
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a JSON object")
        logger.info(f"Configuration initialized. Config file used: {path}")
    else:
        logger.info("No config file found, using environment variables only")

    apply_env_overrides(data, environ)

    project_id = (data.get("secrets") or {}).get("project_id")
    if secret_service is not None or project_id:
        if secret_service is None:
            from ..services.secrets import SecretManagerService
            try:
                secret_service = SecretManagerService(project_id=project_id)
            except Exception as e:
                raise ConfigurationError(f"unable to initialize Secret Manager: {e}") from e
        secret_service.fill_missing_credentials(data)

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e

    missing = settings.missing_credentials()
    if missing:
        raise ConfigurationError(f"missing required configuration values: {', '.join(missing)}")

    return settings
