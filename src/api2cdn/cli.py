import logging
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer

from .config.settings import Config
from .config_loader import load_settings, load_sync_config
from .domain.enums import Environment
from .domain.models import AccessCheckResult
from .pipeline.publish import KVPublisher, collect_output_files
from .pipeline.runner import SyncRunner
from .types import BatchOutcome, PipelineRunOutcome, SyncError, SyncSettings
from .utils import setup_logging

app = typer.Typer(help="API-to-CDN Sync: Fetch -> Transform -> Publish")

EnvOption = Annotated[
    Optional[Environment],
    typer.Option("--env", "-e", help="Target environment (defaults to $ENVIRONMENT or development)"),
]
ConfigOption = Annotated[
    Optional[str],
    typer.Option("--config", "-c", help="Path to YAML sync file (defaults to the packaged data/sync.yml)"),
]
OutputDirOption = Annotated[
    Optional[Path],
    typer.Option("--output-dir", "-o", help="Directory for generated modules (defaults to $SYNC_OUTPUT_DIR or ./output)"),
]


def _fail(error: SyncError) -> NoReturn:
    """Report a fatal error without credentials and exit non-zero."""
    logging.error(f"{error.kind}: {error}")
    typer.echo(f"ERROR {error.kind}: {error}", err=True)
    raise typer.Exit(1)


def _env_value(env: Optional[Environment]) -> Optional[str]:
    return env.value if env else None


def _preflight(secure_config: Config, settings: SyncSettings, include_cdn: bool, force: bool) -> None:
    """Run configuration validation unless forced past it."""
    if force:
        logging.warning("Skipping configuration validation (force enabled)")
        return

    issues = secure_config.validation_issues(
        namespace_id=settings.cdn.namespace_id,
        public_domain=settings.cdn.public_domain,
        include_cdn=include_cdn,
    )
    if issues:
        typer.echo("Configuration validation failed:", err=True)
        for issue in issues:
            typer.echo(f"  - {issue}", err=True)
        typer.echo("\nTip: Use --force to skip validation", err=True)
        raise typer.Exit(1)


def _print_run_summary(outcome: PipelineRunOutcome) -> None:
    typer.echo("\nSummary:")
    for result in outcome.results:
        typer.echo(f"- Endpoint: {result.name}")
        typer.echo(f"  Records: {result.record_count}")
        typer.echo(f"  Output: {result.output_path}")
        typer.echo(f"  Size: {result.byte_size} bytes")
        if result.deployment:
            typer.echo(f"  URL: {result.deployment.public_url}")
        if result.access_check and not result.access_check.success:
            typer.echo(f"  WARNING: accessibility check failed ({result.access_check.detail})")
    typer.echo(f"Succeeded: {outcome.succeeded}, failed: {outcome.failed}, skipped: {outcome.skipped}")


def _print_batch_summary(outcome: BatchOutcome, checks: dict[str, AccessCheckResult]) -> None:
    typer.echo("\nDeployment results:")
    for result in outcome.results:
        if result.succeeded:
            typer.echo(f"  OK   {result.key} ({result.deployment.byte_size} bytes) -> {result.deployment.public_url}")
            check = checks.get(result.key)
            if check and not check.success:
                typer.echo(f"       WARNING: accessibility check failed ({check.detail})")
        else:
            typer.echo(f"  FAIL {result.key}: {result.error_kind}: {result.error}")
    typer.echo(f"Total: {outcome.total}, succeeded: {outcome.succeeded}, failed: {outcome.failed}")


@app.command("sync")
def sync(
    env: EnvOption = None,
    endpoint: Annotated[Optional[list[str]], typer.Option("--endpoint", help="Endpoint name to sync (repeatable, default: all)")] = None,
    config: ConfigOption = None,
    output_dir: OutputDirOption = None,
    force: Annotated[bool, typer.Option("--force", help="Skip pre-flight configuration validation")] = False,
    skip_publish: Annotated[bool, typer.Option("--skip-publish", help="Generate modules locally without uploading")] = False,
    verify: Annotated[bool, typer.Option("--verify/--no-verify", help="Check public accessibility after upload")] = True,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Validate configuration without fetching or publishing")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output")] = False,
    log_to_file: Annotated[bool, typer.Option("--log-to-file", help="Create timestamped log files")] = False,
):
    """
    Fetch configured endpoints, render ES modules and publish them to the CDN.

    Stops at the first failing endpoint; modules already written stay in the
    output directory for inspection.

    Examples:
        api2cdn sync --env production
        api2cdn sync --endpoint account-specs --skip-publish
        api2cdn sync --env development --force --verbose
    """
    setup_logging(verbose, "sync", _env_value(env) or "default", log_to_file)

    try:
        secure_config, settings = load_settings(
            environment=_env_value(env),
            config_path=config,
            endpoint_names=endpoint,
            output_dir=output_dir,
        )
    except SyncError as e:
        _fail(e)

    _preflight(secure_config, settings, include_cdn=not skip_publish, force=force)

    if dry_run:
        logging.info(f"DRY RUN: Would sync {len(settings.endpoints)} endpoint(s) to {settings.environment.value}")
        for configured in settings.endpoints:
            logging.info(f"  {configured.name}: {settings.api.base_url}{configured.source_path} -> "
                         f"{settings.output_dir / configured.output_file}")
        logging.info(f"Publishing: {'disabled' if skip_publish else settings.cdn.public_domain}")
        return

    runner = SyncRunner(settings, publish=not skip_publish, verify=verify)
    try:
        outcome = runner.run()
    finally:
        runner.close()

    _print_run_summary(outcome)
    if not outcome.ok:
        typer.echo(f"\nSync process failed at endpoint '{outcome.failed_endpoint}'", err=True)
        _fail(outcome.first_error)

    typer.echo("Sync process completed successfully!")


@app.command("deploy")
def deploy(
    env: EnvOption = None,
    config: ConfigOption = None,
    output_dir: OutputDirOption = None,
    force: Annotated[bool, typer.Option("--force", help="Skip pre-flight configuration validation")] = False,
    verify: Annotated[bool, typer.Option("--verify/--no-verify", help="Check public accessibility after upload")] = True,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output")] = False,
    log_to_file: Annotated[bool, typer.Option("--log-to-file", help="Create timestamped log files")] = False,
):
    """
    Upload every generated module in the output directory to the CDN.

    Each file is uploaded independently; one failure does not stop the others.
    Exits non-zero if any upload failed.
    """
    setup_logging(verbose, "deploy", _env_value(env) or "default", log_to_file)

    try:
        secure_config, settings = load_settings(
            environment=_env_value(env),
            config_path=config,
            output_dir=output_dir,
        )
        _preflight(secure_config, settings, include_cdn=True, force=force)
        records = collect_output_files(settings.output_dir)
    except SyncError as e:
        _fail(e)

    if not records:
        typer.echo("WARNING: No JavaScript files found in output directory")
        return

    typer.echo(f"Found {len(records)} files to deploy: {', '.join(r.key for r in records)}")
    publisher = KVPublisher(settings.cdn)
    checks: dict[str, AccessCheckResult] = {}
    try:
        outcome = publisher.publish_all(records)
        if verify:
            for result in outcome.results:
                if result.succeeded:
                    checks[result.key] = publisher.verify_public(result.deployment.public_url)
    finally:
        publisher.close()

    _print_batch_summary(outcome, checks)
    if not outcome.all_succeeded:
        raise typer.Exit(1)


@app.command("validate")
def validate(
    env: EnvOption = None,
    config: ConfigOption = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Also print the (secret-free) configuration summary")] = False,
):
    """Validate credentials and CDN coordinates for an environment."""
    setup_logging(verbose)

    try:
        secure_config, settings = load_settings(environment=_env_value(env), config_path=config)
    except SyncError as e:
        _fail(e)

    typer.echo(f"Validating {settings.environment.value} configuration...")
    if verbose:
        for key, value in secure_config.get_security_summary().items():
            typer.echo(f"  {key}: {value}")

    issues = secure_config.validation_issues(
        namespace_id=settings.cdn.namespace_id,
        public_domain=settings.cdn.public_domain,
    )
    if issues:
        typer.echo("Configuration issues found:")
        for issue in issues:
            typer.echo(f"  - {issue}")
        raise typer.Exit(1)

    typer.echo("Configuration is valid")


@app.command("list-endpoints")
def list_endpoints(config: ConfigOption = None):
    """List endpoints defined in the sync file."""
    try:
        sync_config = load_sync_config(config)
    except SyncError as e:
        _fail(e)

    typer.echo("Configured Endpoints")
    typer.echo("=" * 50)
    for entry in sync_config['endpoints']:
        typer.echo(f"\n* {entry.name}")
        typer.echo(f"   Path: {entry.source_path}")
        typer.echo(f"   Output: {entry.output_file}")
    typer.echo(f"\nEnvironments: {', '.join(sync_config['environments']) or 'none'}")


@app.command("version")
def version():
    """Display version information."""
    from . import __version__
    typer.echo(f"api2cdn version: {__version__}")


if __name__ == "__main__":
    app()
