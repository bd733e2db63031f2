"""
Secure configuration management for the API-to-CDN sync pipeline.

Usage:
    from api2cdn.config.settings import Config
    config = Config(environment="production")
    config.validate()

Environment Variables:
    API_BASE_URL: Upstream API base URL
    API_AUTH_TOKEN: Bearer token for the upstream API
    API_TIMEOUT_SECONDS: Upstream request timeout
    CLOUDFLARE_API_TOKEN: Token with KV write permission
    CLOUDFLARE_ACCOUNT_ID: Cloudflare account owning the namespace
    CLOUDFLARE_API_BASE_URL: Cloudflare API root (testing override)
    CDN_NAMESPACE_ID: KV namespace override for the selected environment
    CDN_PUBLIC_DOMAIN: Public domain override for the selected environment
    CDN_UPLOAD_TIMEOUT_SECONDS / CDN_CHECK_TIMEOUT_SECONDS: CDN timeouts
    SYNC_OUTPUT_DIR: Directory for generated modules
    SYNC_MAX_ATTEMPTS / SYNC_RETRY_BASE_DELAY: Retry policy
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from ..domain.enums import Environment
from ..domain.models import DEFAULT_CLOUDFLARE_API
from ..types import ConfigurationError
from ..utils import mask_secret

logger = logging.getLogger(__name__)

PLACEHOLDER_NAMESPACE_PREFIX = "your-"
PLACEHOLDER_DOMAIN = "example.com"


@dataclass
class ApiCredentials:
    """Upstream API configuration."""
    base_url: str
    auth_token: Optional[str]
    timeout_s: float

    def __post_init__(self):
        """Validate API configuration."""
        if not self.base_url.startswith(('http://', 'https://')):
            raise ValueError("API base URL must include protocol (https://)")
        if self.timeout_s <= 0:
            raise ValueError("API timeout must be positive")


@dataclass
class CloudflareCredentials:
    """Cloudflare account configuration."""
    api_token: Optional[str]
    account_id: Optional[str]
    api_base_url: str
    namespace_id: Optional[str]
    public_domain: Optional[str]
    upload_timeout_s: float
    check_timeout_s: float

    def __post_init__(self):
        """Validate Cloudflare configuration."""
        if not self.api_base_url.startswith(('http://', 'https://')):
            raise ValueError("Cloudflare API URL must include protocol (https://)")
        if self.upload_timeout_s <= 0 or self.check_timeout_s <= 0:
            raise ValueError("CDN timeouts must be positive")


@dataclass
class SyncOptions:
    """Local output and retry configuration."""
    output_dir: Path
    max_attempts: int
    retry_base_delay: float

    def __post_init__(self):
        """Validate sync options."""
        if self.max_attempts < 1:
            raise ValueError("Max attempts must be at least 1")
        if self.retry_base_delay < 0:
            raise ValueError("Retry delay must be non-negative")


def _env_number(name: str, default: str, cast: type) -> Any:
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


class Config:
    """
    Secrets and tuning knobs for one sync run.

    Endpoint definitions and per-environment CDN coordinates live in the YAML
    sync file (see ``config_loader``); ``CDN_NAMESPACE_ID`` and
    ``CDN_PUBLIC_DOMAIN`` override them here.

    Dotenv files are read before the values below, without overriding
    variables already set in the process:
    - an explicit ``env_file``, if given (and nothing else), otherwise
    - ``.env.<environment>`` then ``.env`` from the project root

    Example:
        config = Config(environment="production")
        config.validate(namespace_id="abc123", public_domain="cdn.company.net")
    """

    PROJECT_MARKERS = ("pyproject.toml", ".git")

    def __init__(self,
                 environment: Optional[str] = None,
                 env_file: Optional[Path] = None,
                 validate_on_init: bool = False):
        """
        Resolve the environment, read dotenv files and parse every setting.

        Args:
            environment: development or production; defaults to $ENVIRONMENT
            env_file: Dotenv file to read instead of the project-root files
            validate_on_init: Run ``validate()`` straight away
        """
        raw_environment = environment or os.getenv("ENVIRONMENT", Environment.DEVELOPMENT.value)
        try:
            self.environment = Environment(raw_environment)
        except ValueError:
            valid = ", ".join(e.value for e in Environment)
            raise ConfigurationError(f"Unknown environment '{raw_environment}'. Valid: {valid}")

        self.project_root = self._find_project_root()
        self._loaded_env_files = self._read_dotenv_files(env_file)

        self._load_api_config()
        self._load_cloudflare_config()
        self._load_sync_options()

        if validate_on_init:
            self.validate()

    def _find_project_root(self) -> Path:
        """Closest directory above the working directory or this package holding a project marker."""
        cwd = Path.cwd()
        for start in (cwd, Path(__file__).resolve().parent):
            for candidate in (start, *start.parents):
                if any((candidate / marker).exists() for marker in self.PROJECT_MARKERS):
                    return candidate
        return cwd

    def _dotenv_candidates(self, env_file: Optional[Path]) -> list[Path]:
        if env_file:
            if not env_file.exists():
                raise ConfigurationError(f"Specified env file not found: {env_file}")
            return [env_file]
        candidates = [
            self.project_root / f".env.{self.environment.value}",
            self.project_root / ".env",
        ]
        return [path for path in candidates if path.exists()]

    def _read_dotenv_files(self, env_file: Optional[Path]) -> list[str]:
        loaded = []
        for path in self._dotenv_candidates(env_file):
            load_dotenv(path)
            loaded.append(str(path))
            logger.info(f"Read settings from {path}")

        if not loaded:
            logger.debug("No dotenv file found, reading the process environment only")
        logger.debug(f"Project root: {self.project_root}, environment: {self.environment.value}")
        return loaded

    def _load_api_config(self) -> None:
        """Load upstream API configuration."""
        try:
            self.api = ApiCredentials(
                base_url=os.getenv("API_BASE_URL", "http://localhost:3001"),
                auth_token=os.getenv("API_AUTH_TOKEN") or None,
                timeout_s=_env_number("API_TIMEOUT_SECONDS", "10", float),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid API configuration: {e}")

    def _load_cloudflare_config(self) -> None:
        """Load Cloudflare credentials; namespace and domain may also come from YAML."""
        try:
            self.cloudflare = CloudflareCredentials(
                api_token=os.getenv("CLOUDFLARE_API_TOKEN") or None,
                account_id=os.getenv("CLOUDFLARE_ACCOUNT_ID") or None,
                api_base_url=os.getenv("CLOUDFLARE_API_BASE_URL", DEFAULT_CLOUDFLARE_API).rstrip("/"),
                namespace_id=os.getenv("CDN_NAMESPACE_ID") or None,
                public_domain=os.getenv("CDN_PUBLIC_DOMAIN") or None,
                upload_timeout_s=_env_number("CDN_UPLOAD_TIMEOUT_SECONDS", "30", float),
                check_timeout_s=_env_number("CDN_CHECK_TIMEOUT_SECONDS", "10", float),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid Cloudflare configuration: {e}")

    def _load_sync_options(self) -> None:
        """Load output and retry configuration."""
        try:
            self.sync = SyncOptions(
                output_dir=Path(os.getenv("SYNC_OUTPUT_DIR", "output")),
                max_attempts=_env_number("SYNC_MAX_ATTEMPTS", "3", int),
                retry_base_delay=_env_number("SYNC_RETRY_BASE_DELAY", "1.0", float),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid sync configuration: {e}")

    def validation_issues(
        self,
        namespace_id: Optional[str] = None,
        public_domain: Optional[str] = None,
        include_cdn: bool = True,
    ) -> list[str]:
        """
        Collect pre-flight configuration problems without raising.

        Args:
            namespace_id: Namespace resolved for this environment (YAML or env)
            public_domain: Public domain resolved for this environment
            include_cdn: Also check the Cloudflare side

        Returns:
            Human-readable issues, empty when the configuration is usable
        """
        issues = []
        env_name = self.environment.value

        if not self.api.auth_token:
            issues.append("Missing API_AUTH_TOKEN environment variable")

        if include_cdn:
            namespace_id = namespace_id or self.cloudflare.namespace_id
            public_domain = public_domain or self.cloudflare.public_domain

            if not self.cloudflare.api_token:
                issues.append("Missing CLOUDFLARE_API_TOKEN environment variable")
            if not self.cloudflare.account_id:
                issues.append("Missing CLOUDFLARE_ACCOUNT_ID environment variable")
            if not namespace_id or namespace_id.startswith(PLACEHOLDER_NAMESPACE_PREFIX):
                issues.append(f"Namespace ID not configured for {env_name} environment")
            if not public_domain or public_domain.endswith(PLACEHOLDER_DOMAIN):
                issues.append(f"CDN domain not configured for {env_name} environment")

        return issues

    def validate(self, **kwargs: Any) -> None:
        """
        Raise if ``validation_issues`` reports anything.

        Keyword arguments are passed through to ``validation_issues``.

        Raises:
            ConfigurationError: Message lists every issue, one per line
        """
        issues = self.validation_issues(**kwargs)
        if issues:
            listing = "\n".join(f"  - {issue}" for issue in issues)
            raise ConfigurationError(f"Configuration validation failed:\n{listing}")

        logger.info(f"Configuration for {self.environment.value} is valid")

    def get_security_summary(self) -> dict[str, Any]:
        """Settings overview for ``validate -v`` output; tokens are masked."""
        return {
            'environment': self.environment.value,
            'loaded_env_files': self._loaded_env_files,
            'api_base_url': self.api.base_url,
            'api_auth_token': mask_secret(self.api.auth_token),
            'cloudflare_api_token': mask_secret(self.cloudflare.api_token),
            'cloudflare_account_id': self.cloudflare.account_id,
            'output_dir': str(self.sync.output_dir),
            'max_attempts': self.sync.max_attempts,
        }

    def __repr__(self) -> str:
        """Credential-free representation."""
        return (
            f"Config(environment={self.environment.value}, "
            f"api={self.api.base_url}, "
            f"account={self.cloudflare.account_id})"
        )
