"""Typer application and CLI entry point for rulesmith.

This module wires together the top-level Typer application and its three
commands:

* ``generate`` -- load a spec, extract its endpoints and write the rule
  files, README, agent guide and ``llms.txt`` index.
* ``validate`` -- check that a spec loads, declares a supported version and
  dereferences cleanly.
* ``inspect`` -- list the endpoints the extractor would produce, as a table
  or JSON.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`rulesmith.config`: Config file discovery and precedence resolution.
    :mod:`rulesmith.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import shutil
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
from pydantic import ValidationError
from rich.logging import RichHandler

from rulesmith import __version__
from rulesmith.exceptions import ConfigError, InvalidUsageError, OutputError, RulesmithError
from rulesmith.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED
from rulesmith.models import EndpointInfo, ExtractorOptions
from rulesmith.output import (
    OutputFormat,
    OutputManager,
    debug,
    error,
    get_output,
    info,
    progress,
    set_output,
    success,
    suggest,
    warning,
)


app = typer.Typer(
    name="rulesmith",
    help="Turn Swagger 2.0 / OpenAPI 3.x specs into rule files for AI coding agents.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"rulesmith {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every command.

    Initialises the global :class:`~rulesmith.output.OutputManager` from CLI
    flags. With ``--verbose`` the library loggers are routed to stderr at
    DEBUG level as well.
    """
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=output.stderr_console, show_path=False)],
            force=True,
        )


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("generate")
def generate_command(
    input_: Optional[str] = typer.Option(
        None, "--input", "-i", help="OpenAPI spec file path, URL, or - for stdin."
    ),
    output_dir: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output directory for rule files (cleared first)."
    ),
    split_by_domain: Optional[bool] = typer.Option(
        None,
        "--split-by-domain/--no-split-by-domain",
        help="Write rules into one folder per tag.  [default: split]",
    ),
    language: Optional[str] = typer.Option(
        None, "--language", "-l", help="Label language: ko or en.  [default: ko]"
    ),
    include_examples: Optional[bool] = typer.Option(
        None,
        "--include-examples/--no-include-examples",
        help="Use spec examples in the JSON samples.  [default: include]",
    ),
    exclude_tags: Optional[str] = typer.Option(
        None, "--exclude-tags", help="Comma-separated tags to exclude."
    ),
    exclude_paths: Optional[str] = typer.Option(
        None, "--exclude-paths", help="Comma-separated path regexes to exclude."
    ),
    include_deprecated: bool = typer.Option(
        False, "--include-deprecated", help="Keep deprecated operations."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Config file (JSON or YAML)."
    ),
) -> None:
    """Generate rule files from an OpenAPI specification.

    Example::

        rulesmith generate -i petstore.yaml -o ./api-rules --language en
    """
    from rulesmith.config import resolve_config
    from rulesmith.generator import generate_rules

    try:
        config = resolve_config(
            config_path,
            input=input_,
            output=output_dir,
            split_by_domain=split_by_domain,
            language=language,
            include_examples=include_examples,
            exclude_tags=_split_csv(exclude_tags),
            exclude_paths=_split_csv(exclude_paths),
            exclude_deprecated=False if include_deprecated else None,
        )
        if not config.input:
            raise InvalidUsageError("Missing spec: pass --input or set 'input' in the config file")
        if not config.output:
            raise InvalidUsageError(
                "Missing output directory: pass --output or set 'output' in the config file"
            )

        options = _extractor_options(
            config.exclude_tags, config.exclude_paths, config.exclude_deprecated
        )
        endpoints = _load_endpoints(config.input, options)
        info(f"Found {len(endpoints)} endpoints")
        if not endpoints:
            warning("No endpoints left after filtering; only the index files will be written")

        out_dir = Path(config.output).resolve()
        _clear_output_dir(out_dir)

        progress("Generating rule files...")
        outputs = generate_rules(
            endpoints,
            out_dir,
            split_by_domain=config.split_by_domain,
            include_examples=config.include_examples,
            language=config.language,
            business_rules=config.business_rules,
        )
    except RulesmithError as exc:
        _fail(exc)

    domains = {rule.domain for rule in outputs if rule.domain}
    success(f"Generated {len(outputs)} rule files in {out_dir}")
    if domains:
        info(f"  {len(domains)} domains: {', '.join(sorted(domains))}")
    info("  README.md, agent.md, llms.txt")
    suggest(f"Point your agent at {out_dir / 'agent.md'}")


@app.command("validate")
def validate_command(
    spec: str = typer.Argument(..., help="OpenAPI spec file path, URL, or - for stdin."),
) -> None:
    """Validate an OpenAPI specification.

    Checks that the document loads, declares ``swagger: 2.0`` or
    ``openapi: 3.x``, has a ``paths`` object and that every internal
    ``$ref`` resolves.
    """
    from rulesmith.parser import load_spec, preprocess, validate_document

    try:
        progress("Validating specification...")
        raw = load_spec(spec)
        version = validate_document(raw)
        preprocess(raw)
    except RulesmithError as exc:
        _fail(exc)

    dialect = "Swagger" if "swagger" in raw else "OpenAPI"
    success(f"Valid {dialect} {version} specification ({len(raw['paths'])} paths)")


@app.command("inspect")
def inspect_command(
    spec: str = typer.Argument(..., help="OpenAPI spec file path, URL, or - for stdin."),
    exclude_tags: Optional[str] = typer.Option(
        None, "--exclude-tags", help="Comma-separated tags to exclude."
    ),
    exclude_paths: Optional[str] = typer.Option(
        None, "--exclude-paths", help="Comma-separated path regexes to exclude."
    ),
    include_deprecated: bool = typer.Option(
        False, "--include-deprecated", help="Keep deprecated operations."
    ),
) -> None:
    """List the endpoints rule files would be generated for.

    With ``--json`` every endpoint is dumped in full, including parameters
    and simplified schemas.
    """
    try:
        options = _extractor_options(
            _split_csv(exclude_tags) or [],
            _split_csv(exclude_paths) or [],
            not include_deprecated,
        )
        endpoints = _load_endpoints(spec, options)
    except RulesmithError as exc:
        _fail(exc)

    output = get_output()
    if output.format == OutputFormat.JSON:
        output.print_json(
            [ep.model_dump(mode="json", by_alias=True, exclude_none=True) for ep in endpoints]
        )
        return

    rows = [
        [
            ep.method.value.upper(),
            ep.path,
            ep.operation_id,
            (ep.request_body.schema_name or "") if ep.request_body else "",
            _success_schema_name(ep),
        ]
        for ep in endpoints
    ]
    output.print_table(
        ["Method", "Path", "Operation ID", "Request", "Response"],
        rows,
        title=f"Endpoints ({len(rows)})",
    )


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _load_endpoints(source: str, options: ExtractorOptions) -> list[EndpointInfo]:
    """Load, validate, dereference and extract *source*."""
    from rulesmith.parser import extract_endpoints, load_spec, preprocess, validate_document

    progress("Loading specification...")
    raw = load_spec(source)
    version = validate_document(raw)
    debug(f"Spec version: {version}")

    progress("Preprocessing specification...")
    processed = preprocess(raw)

    progress("Extracting endpoints...")
    return extract_endpoints(processed, raw, options)


def _extractor_options(
    exclude_tags: list[str], exclude_paths: list[str], exclude_deprecated: bool
) -> ExtractorOptions:
    try:
        return ExtractorOptions(
            exclude_tags=set(exclude_tags),
            exclude_paths=exclude_paths,
            exclude_deprecated=exclude_deprecated,
        )
    except ValidationError as exc:
        messages = "; ".join(err["msg"] for err in exc.errors())
        raise ConfigError(f"Invalid exclusion filter: {messages}") from exc


def _split_csv(value: Optional[str]) -> Optional[list[str]]:
    """Split a comma-separated flag value, or return ``None`` when the flag is absent."""
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _clear_output_dir(out_dir: Path) -> None:
    """Delete *out_dir* so stale rule files from a previous run disappear.

    Raises:
        OutputError: If *out_dir* is the working directory or one of its
            ancestors, is not a directory, or cannot be removed.
    """
    if not out_dir.exists():
        return
    cwd = Path.cwd().resolve()
    if cwd == out_dir or cwd.is_relative_to(out_dir):
        raise OutputError(
            f"Refusing to clear {out_dir}: it contains the current working directory"
        )
    if not out_dir.is_dir():
        raise OutputError(f"Output path exists and is not a directory: {out_dir}")
    debug(f"Removing existing output directory {out_dir}")
    try:
        shutil.rmtree(out_dir)
    except OSError as exc:
        raise OutputError(f"Cannot clear output directory {out_dir}: {exc}") from exc


def _success_schema_name(endpoint: EndpointInfo) -> str:
    for response in endpoint.responses:
        if response.status_code.startswith("2"):
            return response.schema_name or ""
    return ""


def _fail(exc: RulesmithError) -> NoReturn:
    error(str(exc))
    raise typer.Exit(code=exc.exit_code)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from rulesmith.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``rulesmith`` console script.

    :class:`~rulesmith.exceptions.RulesmithError` instances that escape a
    command cause a clean exit with the error's ``exit_code``. All other
    exceptions produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except RulesmithError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
