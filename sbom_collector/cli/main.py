import os
import signal
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

import click
import sentry_sdk
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import ComponentScope

from .. import __version__
from .._collection import CollectionOrchestrator, CollectorRegistry, ShellExecutor, create_default_registry
from .._collection.collectors import SyftCollector
from .._merge import cpe_from_component, set_created_at_property, strip_cpes
from .._upload import DependencyTrackConfig, DependencyTrackDestination, UploadInput
from ..console import (
    print_banner,
    print_collection_summary,
    print_final_failure,
    print_step_end,
    print_step_header,
    print_upload_summary,
)
from ..exceptions import (
    APIError,
    CollectionCancelledError,
    ConfigurationError,
    SbomCollectorError,
    UnsupportedRepositoryError,
)
from ..logging_config import logger, set_log_level
from ..repository import DEFAULT_CHECKOUTS_ROOT, Credentials, checkout_repository
from ..serialization import SUPPORTED_FORMATS, encode_bom

SBOM_COLLECTOR_VERSION = __version__

OUTPUT_SINKS = ("stdout", "file", "dtrack")
SCOPE_CHOICES = ("required", "optional", "excluded", "none")
DEFAULT_EXCLUDED_SCOPE = "optional"

# Process exit codes
EXIT_FAILURE = 1
EXIT_UNSUPPORTED = 3
EXIT_CANCELLED = 130

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@dataclass
class Config:
    """Configuration settings for a collection run."""

    mode: str
    target: str
    output: str = "stdout"
    output_file: Optional[str] = None
    format: str = "json"
    tags: List[str] = field(default_factory=list)
    generic: bool = False
    exclude_scope: Optional[str] = DEFAULT_EXCLUDED_SCOPE
    attach_cpes: bool = False
    strip_cpes: bool = False
    exclude: List[str] = field(default_factory=list)
    code_owners: List[str] = field(default_factory=list)
    project_name: Optional[str] = None
    checkouts_root: str = DEFAULT_CHECKOUTS_ROOT

    def validate(self) -> None:
        """
        Validate configuration settings.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.mode not in ("repo", "fs"):
            raise ConfigurationError(f"Unknown mode: {self.mode}")
        if not self.target:
            raise ConfigurationError("No repository URL or path given")
        if self.mode == "fs" and not os.path.isdir(self.target):
            raise ConfigurationError(f"Not a directory: {self.target}")

        if self.output not in OUTPUT_SINKS:
            raise ConfigurationError(f"Unknown output: {self.output}. Expected one of: {', '.join(OUTPUT_SINKS)}")
        if self.output == "file" and not self.output_file:
            raise ConfigurationError("--output-file is required with --output file")
        if self.output == "dtrack" and DependencyTrackConfig.from_env() is None:
            raise ConfigurationError("Dependency Track upload requires DTRACK_API_URL and DTRACK_API_KEY")

        if self.format not in SUPPORTED_FORMATS:
            raise ConfigurationError(f"Unknown format: {self.format}. Expected one of: {', '.join(SUPPORTED_FORMATS)}")

        if self.exclude_scope is not None and self.exclude_scope not in SCOPE_CHOICES:
            raise ConfigurationError(f"Unknown scope: {self.exclude_scope}")

        if self.attach_cpes and self.strip_cpes:
            raise ConfigurationError("--attach-cpes and --strip-cpes are mutually exclusive")

    @property
    def excluded_scope(self) -> Optional[ComponentScope]:
        """The scope to filter out, or None when filtering is disabled."""
        if self.exclude_scope is None or self.exclude_scope == "none":
            return None
        return ComponentScope(self.exclude_scope)


def initialize_sentry() -> None:
    """Initialize Sentry for error tracking when a DSN is configured."""
    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn:
        return
    if not evaluate_boolean(os.getenv("TELEMETRY", "true")):
        logger.debug("Telemetry disabled")
        return

    sentry_sdk.init(
        dsn=sentry_dsn,
        send_default_pii=True,
        traces_sample_rate=1.0,
        profiles_sample_rate=1.0,
        before_send=before_send,
    )


def before_send(event, hint):
    """
    Filter events before sending to Sentry.

    Configuration mistakes, unsupported repositories and cancelled runs are
    expected outcomes, not bugs.
    """
    if "exc_info" in hint:
        exc_type, exc_value, tb = hint["exc_info"]
        if isinstance(exc_value, (ConfigurationError, UnsupportedRepositoryError, CollectionCancelledError)):
            return None
    return event


def evaluate_boolean(value: str) -> bool:
    """
    Evaluate string values as boolean.

    Args:
        value: String value to evaluate

    Returns:
        Boolean result
    """
    return value.lower() in ["true", "yes", "yeah", "1"]


def _split_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated option into its non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def build_config(
    mode: str,
    target: str,
    output: str = "stdout",
    output_file: Optional[str] = None,
    format: str = "json",
    tags: Optional[str] = None,
    generic: bool = False,
    exclude_scope: Optional[str] = DEFAULT_EXCLUDED_SCOPE,
    attach_cpes: bool = False,
    strip_cpes: bool = False,
    exclude: Optional[str] = None,
    code_owners: Optional[str] = None,
    project_name: Optional[str] = None,
    checkouts_root: Optional[str] = None,
) -> Config:
    """
    Build a validated Config from CLI options.

    Raises:
        ConfigurationError: If the options are invalid
    """
    if mode == "fs" and target and not project_name:
        project_name = os.path.basename(os.path.abspath(target))

    config = Config(
        mode=mode,
        target=target,
        output=output.lower(),
        output_file=output_file,
        format=format.lower(),
        tags=_split_list(tags),
        generic=generic,
        exclude_scope=exclude_scope.lower() if exclude_scope else None,
        attach_cpes=attach_cpes,
        strip_cpes=strip_cpes,
        exclude=_split_list(exclude),
        code_owners=_split_list(code_owners),
        project_name=project_name,
        checkouts_root=checkouts_root or DEFAULT_CHECKOUTS_ROOT,
    )
    config.validate()
    return config


def _collect_repository(config: Config, cancel_event: threading.Event) -> None:
    credentials = Credentials(
        username=os.getenv("GITHUB_USERNAME", ""),
        access_token=os.getenv("GITHUB_TOKEN", ""),
    )

    print_step_header(f"Collecting {config.target}")
    with checkout_repository(config.target, config.checkouts_root, credentials, cancel_event) as repository:
        executor = ShellExecutor(cancel_event)
        orchestrator = CollectionOrchestrator(
            create_default_registry(executor, include_repository_collectors=config.generic),
            cancel_event=cancel_event,
            excluded_scope=config.excluded_scope,
            cpe_attacher=cpe_from_component if config.attach_cpes else None,
        )
        result = orchestrator.collect(repository.path)
        print_collection_summary(result.summary(), len(result.bom.components))
        print_step_end()

        _deliver(config, result.bom, repository.name, repository.code_owners)


def _collect_filesystem(config: Config, cancel_event: threading.Event) -> None:
    print_step_header(f"Scanning {config.target}")
    executor = ShellExecutor(cancel_event)
    orchestrator = CollectionOrchestrator(
        CollectorRegistry([SyftCollector(executor, exclude=config.exclude)]),
        cancel_event=cancel_event,
        excluded_scope=config.excluded_scope,
        cpe_attacher=cpe_from_component if config.attach_cpes else None,
    )
    result = orchestrator.collect(os.path.abspath(config.target))
    print_collection_summary(result.summary(), len(result.bom.components))
    print_step_end()

    _deliver(config, result.bom, config.project_name or os.path.basename(config.target), config.code_owners)


def _deliver(config: Config, bom: Bom, project_name: str, code_owners: List[str]) -> None:
    """Apply the output-stage post-processors and write the BOM to its sink."""
    if config.strip_cpes:
        bom = strip_cpes(bom)
    bom = set_created_at_property(bom)

    if config.output == "dtrack":
        destination = DependencyTrackDestination()
        result = destination.upload(
            UploadInput(
                bom_data=encode_bom(bom, "json"),
                project_name=project_name,
                tags=config.tags,
                code_owners=code_owners,
            )
        )
        print_upload_summary(destination.name, result.success, result.project_name, result.error_message)
        if not result.success:
            raise APIError(result.error_message or f"Upload to {destination.name} failed")
        return

    output = encode_bom(bom, config.format)
    if config.output == "file":
        with open(config.output_file, "w", encoding="utf-8") as f:
            f.write(output)
        logger.info(f"BOM written to {config.output_file}")
    else:
        click.echo(output)


def run_pipeline(config: Config, cancel_event: threading.Event) -> None:
    """
    Run a full collection for the configured target.

    Raises:
        SbomCollectorError: If checkout, collection or output fails
        CollectionCancelledError: If the cancel event was set
    """
    if config.mode == "repo":
        _collect_repository(config, cancel_event)
    else:
        _collect_filesystem(config, cancel_event)


@contextmanager
def _cancel_on_signals(cancel_event: threading.Event) -> Iterator[None]:
    """Set the cancel event on SIGINT/SIGTERM for the duration of the block."""

    def handler(signum, frame):
        logger.warning(f"Received {signal.Signals(signum).name}, cancelling")
        cancel_event.set()

    previous = {}
    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, handler)
    try:
        yield
    finally:
        for signum, previous_handler in previous.items():
            signal.signal(signum, previous_handler)


def _run(config: Config) -> None:
    """Run the pipeline and translate its outcome into an exit code."""
    cancel_event = threading.Event()
    try:
        with _cancel_on_signals(cancel_event):
            run_pipeline(config, cancel_event)
    except UnsupportedRepositoryError as e:
        logger.error(str(e))
        print_final_failure(str(e))
        sys.exit(EXIT_UNSUPPORTED)
    except CollectionCancelledError as e:
        logger.warning(str(e))
        print_final_failure("Collection cancelled")
        sys.exit(EXIT_CANCELLED)
    except SbomCollectorError as e:
        logger.error(str(e))
        print_final_failure(str(e))
        sys.exit(EXIT_FAILURE)


def _build_or_exit(**kwargs) -> Config:
    try:
        return build_config(**kwargs)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        print_final_failure(str(e))
        sys.exit(EXIT_FAILURE)


def output_options(func):
    """Options shared by every collection command."""
    options = [
        click.option(
            "--output",
            type=click.Choice(OUTPUT_SINKS, case_sensitive=False),
            default="stdout",
            show_default=True,
            envvar="SBOM_COLLECTOR_OUTPUT",
            help="Where to send the merged BOM.",
        ),
        click.option(
            "--output-file",
            type=click.Path(dir_okay=False),
            envvar="SBOM_COLLECTOR_OUTPUT_FILE",
            help="File to write when --output is file.",
        ),
        click.option(
            "--format",
            "format_",
            type=click.Choice(SUPPORTED_FORMATS, case_sensitive=False),
            default="json",
            show_default=True,
            envvar="SBOM_COLLECTOR_FORMAT",
            help="BOM encoding for stdout and file output.",
        ),
        click.option(
            "--tags",
            envvar="SBOM_COLLECTOR_TAGS",
            help="Comma-separated Dependency Track project tags.",
        ),
        click.option(
            "--exclude-scope",
            type=click.Choice(SCOPE_CHOICES, case_sensitive=False),
            default=DEFAULT_EXCLUDED_SCOPE,
            show_default=True,
            envvar="SBOM_COLLECTOR_EXCLUDE_SCOPE",
            help="Drop components with this scope ('none' keeps everything).",
        ),
        click.option(
            "--attach-cpes/--no-attach-cpes",
            default=False,
            envvar="SBOM_COLLECTOR_ATTACH_CPES",
            help="Fill in missing CPEs from component coordinates.",
        ),
        click.option(
            "--strip-cpes/--no-strip-cpes",
            default=False,
            envvar="SBOM_COLLECTOR_STRIP_CPES",
            help="Remove every CPE from the output.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    envvar="SBOM_COLLECTOR_LOG_LEVEL",
    help="Logging verbosity.",
)
@click.option(
    "--structured-logs/--no-structured-logs",
    default=False,
    envvar="SBOM_COLLECTOR_STRUCTURED_LOGS",
    help="Emit logs as JSON lines.",
)
@click.version_option(SBOM_COLLECTOR_VERSION, "--version", prog_name="sbom-collector")
def cli(log_level: str, structured_logs: bool) -> None:
    """Collect and merge CycloneDX SBOMs from source repositories."""
    set_log_level(log_level, structured_logs)
    print_banner(SBOM_COLLECTOR_VERSION)
    initialize_sentry()


@cli.command()
@click.argument("url")
@output_options
@click.option(
    "--generic/--no-generic",
    default=False,
    envvar="SBOM_COLLECTOR_GENERIC",
    help="Also run the repository-wide scanners (trivy, retire.js, cdxgen).",
)
@click.option(
    "--checkouts-root",
    type=click.Path(file_okay=False),
    envvar="SBOM_COLLECTOR_CHECKOUTS_ROOT",
    help="Directory that holds temporary checkouts.",
)
def repo(
    url: str,
    output: str,
    output_file: Optional[str],
    format_: str,
    tags: Optional[str],
    exclude_scope: str,
    attach_cpes: bool,
    strip_cpes: bool,
    generic: bool,
    checkouts_root: Optional[str],
) -> None:
    """Clone a repository and collect its merged BOM."""
    config = _build_or_exit(
        mode="repo",
        target=url,
        output=output,
        output_file=output_file,
        format=format_,
        tags=tags,
        generic=generic,
        exclude_scope=exclude_scope,
        attach_cpes=attach_cpes,
        strip_cpes=strip_cpes,
        checkouts_root=checkouts_root,
    )
    _run(config)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@output_options
@click.option(
    "--exclude",
    envvar="SBOM_COLLECTOR_EXCLUDE",
    help="Comma-separated glob patterns for syft to skip.",
)
@click.option(
    "--code-owners",
    envvar="SBOM_COLLECTOR_CODE_OWNERS",
    help="Comma-separated e-mails recorded as the project's code owners.",
)
@click.option(
    "--dtrack-project-name",
    envvar="SBOM_COLLECTOR_DTRACK_PROJECT_NAME",
    help="Dependency Track project name (defaults to the directory name).",
)
def fs(
    path: str,
    output: str,
    output_file: Optional[str],
    format_: str,
    tags: Optional[str],
    exclude_scope: str,
    attach_cpes: bool,
    strip_cpes: bool,
    exclude: Optional[str],
    code_owners: Optional[str],
    dtrack_project_name: Optional[str],
) -> None:
    """Scan a local directory with syft and emit its BOM."""
    config = _build_or_exit(
        mode="fs",
        target=path,
        output=output,
        output_file=output_file,
        format=format_,
        tags=tags,
        exclude_scope=exclude_scope,
        attach_cpes=attach_cpes,
        strip_cpes=strip_cpes,
        exclude=exclude,
        code_owners=code_owners,
        project_name=dtrack_project_name,
    )
    _run(config)


def main() -> None:
    """Entry point for the sbom-collector console script."""
    cli()


if __name__ == "__main__":
    main()
