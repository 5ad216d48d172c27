"""CLI commands for the recommendation engine."""

import json
import logging
import sys
import uuid
from datetime import datetime
from pathlib import Path

import click
import structlog

from src.config.constants import COMPONENT_CLI
from src.config.error_hints import format_validation_error
from src.config.loader import ConfigLoader
from src.config.schemas.recommender import RecommenderConfig
from src.observability.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
)
from src.recommender.clock import as_utc, utc_now
from src.recommender.metrics import RecommendationMetrics
from src.recommender.models import RecommendationFailure
from src.recommender.repository import InMemoryWorkRepository
from src.recommender.service import RecommendationService
from src.settings import get_settings


logger = structlog.get_logger()


def _setup_logging(
    command: str,
    json_logs: bool | None,
    verbose: bool,
    reader_id: str | None = None,
) -> structlog.typing.FilteringBoundLogger:
    """Configure logging from settings and flags, return a bound logger.

    Args:
        command: CLI command name.
        json_logs: Explicit JSON flag, or None to use settings.
        verbose: Force DEBUG level.
        reader_id: Reader the command serves, if any.

    Returns:
        Bound logger with command context.
    """
    settings = get_settings()
    level = logging.DEBUG if verbose else settings.logging_level()
    configure_logging(
        level=level,
        json_format=settings.json_logs if json_logs is None else json_logs,
    )
    request_id = str(uuid.uuid4())
    bind_request_context(request_id, reader_id)
    return logger.bind(component=COMPONENT_CLI, command=command)  # type: ignore[no-any-return]


def _load_configuration(
    config_path: Path | None, log: structlog.typing.FilteringBoundLogger
) -> RecommenderConfig:
    """Load configuration or exit with formatted errors.

    Args:
        config_path: Path from the command line; falls back to settings.
        log: Logger instance.

    Returns:
        Validated configuration (defaults when no file is configured).
    """
    config_path = config_path or get_settings().config_path
    if config_path is None:
        log.info("config_defaults_used")
        return RecommenderConfig()

    loader = ConfigLoader(run_id="cli")
    try:
        return loader.load(config_path)
    except Exception as e:
        log.warning(
            "config_load_failed",
            error=str(e),
            validation_errors=loader.validation_errors,
        )
        _echo_validation_errors(loader.validation_errors)
        sys.exit(1)


def _echo_validation_errors(errors: list[dict[str, str]]) -> None:
    click.echo("Configuration validation failed:", err=True)
    for error in errors:
        formatted = format_validation_error(
            location=error["loc"],
            message=error["msg"],
            error_type=error.get("type", "unknown"),
            include_hint=True,
        )
        click.echo(f"  - {formatted}", err=True)


def _build_service(
    catalog_path: Path,
    config: RecommenderConfig,
    now: datetime | None,
) -> RecommendationService:
    fixed_now = as_utc(now) if now else None

    def clock() -> datetime:
        return fixed_now or utc_now()

    repository = InMemoryWorkRepository.from_json(
        catalog_path, clock=clock, quality_config=config.quality
    )
    return RecommendationService(repository, config=config, clock=clock)


def _emit(payload: dict[str, object], show_metrics: bool) -> None:
    if show_metrics:
        payload = {**payload, "metrics": RecommendationMetrics.get_instance().to_dict()}
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


_catalog_option = click.option(
    "--catalog",
    "catalog_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to the JSON catalog (works, interactions, follows, telemetry).",
)
_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to recommender.yaml (default: RECOMMENDER_CONFIG_PATH or built-in defaults).",
)
_reader_option = click.option(
    "--reader",
    "reader_id",
    type=str,
    default=None,
    help="Reader id; omit for guest recommendations.",
)
_exclude_option = click.option(
    "--exclude",
    "exclude_work_ids",
    multiple=True,
    help="Work id already shown (repeatable).",
)
_now_option = click.option(
    "--now",
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
    default=None,
    help="Reference time for time windows (UTC).",
)
_json_logs_option = click.option(
    "--json-logs/--no-json-logs",
    default=None,
    help="Use JSON format for logs (default: RECOMMENDER_JSON_LOGS).",
)
_verbose_option = click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
_metrics_option = click.option(
    "--metrics",
    "show_metrics",
    is_flag=True,
    help="Include engine metrics in the output.",
)


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Work recommendation engine CLI."""


@cli.command()
@_catalog_option
@_config_option
@_reader_option
@_exclude_option
@click.option(
    "--target",
    "target_count",
    type=click.IntRange(min=1, max=500),
    default=None,
    help="Number of works to return (default: 72).",
)
@_now_option
@_json_logs_option
@_verbose_option
@_metrics_option
def recommend(  # noqa: PLR0913
    catalog_path: Path,
    config_path: Path | None,
    reader_id: str | None,
    exclude_work_ids: tuple[str, ...],
    target_count: int | None,
    now: datetime | None,
    json_logs: bool | None,
    verbose: bool,
    show_metrics: bool,
) -> None:
    """Recommend works for a reader (or a guest) and print them as JSON."""
    log = _setup_logging("recommend", json_logs, verbose, reader_id)
    try:
        config = _load_configuration(config_path, log)
        service = _build_service(catalog_path, config, now)
        result = service.get_recommendations(
            reader_id, exclude_work_ids, target_count
        )
        if isinstance(result, RecommendationFailure):
            click.echo(result.error, err=True)
            sys.exit(1)
        _emit(result.model_dump(mode="json"), show_metrics)
    finally:
        clear_request_context()


@cli.command()
@_catalog_option
@_config_option
@_reader_option
@_exclude_option
@click.option(
    "--offset",
    type=click.IntRange(min=0),
    default=0,
    help="Number of works already shown.",
)
@_now_option
@_json_logs_option
@_verbose_option
@_metrics_option
def more(  # noqa: PLR0913
    catalog_path: Path,
    config_path: Path | None,
    reader_id: str | None,
    exclude_work_ids: tuple[str, ...],
    offset: int,
    now: datetime | None,
    json_logs: bool | None,
    verbose: bool,
    show_metrics: bool,
) -> None:
    """Print the next page of works not in --exclude."""
    log = _setup_logging("more", json_logs, verbose, reader_id)
    try:
        config = _load_configuration(config_path, log)
        service = _build_service(catalog_path, config, now)
        page = service.get_more_recommendations(reader_id, exclude_work_ids, offset)
        if isinstance(page, RecommendationFailure):
            click.echo(page.error, err=True)
            sys.exit(1)
        _emit(page.model_dump(mode="json"), show_metrics)
    finally:
        clear_request_context()


@cli.command()
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to recommender.yaml configuration file.",
)
def validate(config_path: Path) -> None:
    """Validate a configuration file without serving recommendations."""
    configure_logging(json_format=False)
    loader = ConfigLoader(run_id=str(uuid.uuid4()))

    try:
        config = loader.load(config_path)
    except Exception:
        _echo_validation_errors(loader.validation_errors)
        sys.exit(1)

    click.echo("Configuration is valid!")
    click.echo(f"  Version: {config.version}")
    click.echo(
        "  Strategy thresholds: "
        f"personalized>={config.strategy.personalized_min_actions}, "
        f"adaptive>={config.strategy.adaptive_min_actions}"
    )
    click.echo(f"  Page size: {config.pagination.page_size}")
    click.echo(f"  Checksum: {loader.checksum}")


if __name__ == "__main__":
    cli()
