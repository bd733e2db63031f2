"""
Unified configuration loading interface for the API-to-CDN sync pipeline.

This module merges configuration from two sources:
- data/sync.yml (endpoint definitions and per-environment CDN coordinates)
- Config (secrets and tuning knobs from the environment / .env files)

Returns a single immutable SyncSettings value for use in CLI commands.
"""

from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from .config.settings import Config
from .domain.models import ApiSettings, CdnTarget, EndpointSpec
from .types import ConfigurationError, RetryPolicy, SyncSettings
from .utils import load_yaml_file

DEFAULT_CONFIG_PATH = Path(__file__).parent / "data" / "sync.yml"


def load_sync_config(config_path: Optional[Union[str, Path]] = None) -> dict[str, Any]:
    """
    Load and validate the YAML sync file.

    Args:
        config_path: Path to the sync file (defaults to the packaged data/sync.yml)

    Returns:
        Dictionary with ``endpoints`` (list of EndpointSpec) and
        ``environments`` (environment name -> CDN coordinates)

    Raises:
        ConfigurationError: If the file is missing, malformed or has duplicate endpoints
    """
    config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    try:
        raw = load_yaml_file(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise ConfigurationError(str(e)) from e

    endpoints = []
    seen = set()
    for entry in raw.get('endpoints') or []:
        try:
            endpoint = EndpointSpec(
                name=entry['name'],
                source_path=entry['path'],
                output_file=entry.get('output_file') or f"{entry['name']}.js",
            )
        except (KeyError, TypeError, ValidationError) as e:
            raise ConfigurationError(f"Invalid endpoint entry in {config_path}: {entry!r} ({e})") from e
        if endpoint.name in seen:
            raise ConfigurationError(f"Duplicate endpoint name '{endpoint.name}' in {config_path}")
        seen.add(endpoint.name)
        endpoints.append(endpoint)

    if not endpoints:
        raise ConfigurationError(f"No endpoints defined in {config_path}")

    return {
        'endpoints': endpoints,
        'environments': raw.get('environments') or {},
    }


def load_settings(
    environment: Optional[str] = None,
    config_path: Optional[Union[str, Path]] = None,
    endpoint_names: Optional[list[str]] = None,
    output_dir: Optional[Path] = None,
    env_file: Optional[Path] = None,
) -> tuple[Config, SyncSettings]:
    """
    Resolve all configuration once, at process start.

    Args:
        environment: Target environment (development|production)
        config_path: Path to the YAML sync file
        endpoint_names: Restrict the run to these endpoints, in this order
        output_dir: Override for the generated module directory
        env_file: Explicit .env file

    Returns:
        Tuple of (secure_config, settings)
        - secure_config: Config, kept for pre-flight validation and audit output
        - settings: immutable SyncSettings handed to the pipeline components
    """
    secure_config = Config(environment=environment, env_file=env_file)
    sync_config = load_sync_config(config_path)

    env_name = secure_config.environment.value
    env_section = sync_config['environments'].get(env_name)
    if env_section is None:
        available = list(sync_config['environments'].keys())
        raise ConfigurationError(f"Environment '{env_name}' not found in config. Available: {available}")

    endpoints = sync_config['endpoints']
    if endpoint_names:
        by_name = {e.name: e for e in endpoints}
        unknown = [name for name in endpoint_names if name not in by_name]
        if unknown:
            raise ConfigurationError(
                f"Unknown endpoint(s): {', '.join(unknown)}. Available: {list(by_name)}"
            )
        endpoints = [by_name[name] for name in endpoint_names]

    cloudflare = secure_config.cloudflare
    settings = SyncSettings(
        environment=secure_config.environment,
        api=ApiSettings(
            base_url=secure_config.api.base_url,
            auth_token=secure_config.api.auth_token,
            timeout_s=secure_config.api.timeout_s,
        ),
        cdn=CdnTarget(
            api_token=cloudflare.api_token,
            account_id=cloudflare.account_id,
            namespace_id=cloudflare.namespace_id or env_section.get('namespace_id'),
            public_domain=cloudflare.public_domain or env_section.get('cdn_domain'),
            api_base_url=cloudflare.api_base_url,
            upload_timeout_s=cloudflare.upload_timeout_s,
            check_timeout_s=cloudflare.check_timeout_s,
        ),
        endpoints=tuple(endpoints),
        output_dir=output_dir or secure_config.sync.output_dir,
        retry=RetryPolicy(
            max_attempts=secure_config.sync.max_attempts,
            base_delay=secure_config.sync.retry_base_delay,
        ),
    )
    return secure_config, settings
