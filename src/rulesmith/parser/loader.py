"""Read a Swagger 2.0 or OpenAPI 3.x document into a dict.

A *source* is an ``http(s)://`` URL, a file path, or ``-`` for stdin. Each
reader returns the raw text plus a :class:`DocumentFormat` guess taken from
the file suffix or the response ``Content-Type``; :func:`parse_document`
then decodes it, trying JSON before YAML when the format is unknown.

The dict returned by :func:`load_spec` is never modified downstream, so it
doubles as the reference-intact *original* document handed to
:func:`~rulesmith.parser.extractor.extract_endpoints`.
"""

from __future__ import annotations

import enum
import json
import logging
import sys
from pathlib import Path
from typing import Any

import httpx
import yaml

from rulesmith.exceptions import SpecParseError

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 30.0

SUPPORTED_VERSIONS = "Only Swagger 2.0 and OpenAPI 3.x are supported."


class DocumentFormat(str, enum.Enum):
    JSON = "json"
    YAML = "yaml"
    UNKNOWN = "unknown"


def load_spec(source: str) -> dict[str, Any]:
    """Read and decode the document at *source*.

    Raises:
        SpecParseError: If the source cannot be read, is empty, or does not
            decode to a JSON/YAML object.
    """
    if source == "-":
        text, fmt = _read_stdin()
    elif source.startswith(("http://", "https://")):
        text, fmt = _read_url(source)
    else:
        text, fmt = _read_file(source)
    return parse_document(text, fmt)


def _read_stdin() -> tuple[str, DocumentFormat]:
    try:
        text = sys.stdin.read()
    except OSError as exc:
        raise SpecParseError(f"Failed to read from stdin: {exc}") from exc
    if not text.strip():
        raise SpecParseError("No input received from stdin")
    return text, DocumentFormat.UNKNOWN


def _read_url(url: str) -> tuple[str, DocumentFormat]:
    logger.debug("Fetching spec from %s", url)
    try:
        response = httpx.get(url, timeout=FETCH_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecParseError(
            f"HTTP {exc.response.status_code} fetching spec from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise SpecParseError(f"Failed to fetch spec from {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type:
        fmt = DocumentFormat.JSON
    elif "yaml" in content_type or "yml" in content_type:
        fmt = DocumentFormat.YAML
    else:
        fmt = DocumentFormat.UNKNOWN
    return response.text, fmt


def _read_file(path: str) -> tuple[str, DocumentFormat]:
    file_path = Path(path)
    if not file_path.is_file():
        raise SpecParseError(f"Spec file not found: {path}")
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SpecParseError(f"Failed to read spec file {path}: {exc}") from exc
    if not text.strip():
        raise SpecParseError(f"Spec file is empty: {path}")

    suffix = file_path.suffix.lower()
    if suffix == ".json":
        return text, DocumentFormat.JSON
    if suffix in (".yaml", ".yml"):
        return text, DocumentFormat.YAML
    return text, DocumentFormat.UNKNOWN


def parse_document(text: str, fmt: DocumentFormat = DocumentFormat.UNKNOWN) -> dict[str, Any]:
    """Decode *text* as JSON or YAML and require a top-level object.

    ``JSON`` documents must be valid JSON. ``YAML`` skips the JSON attempt.
    ``UNKNOWN`` tries JSON, then YAML (every JSON document is also YAML, but
    the JSON error is the more useful one to report).

    Raises:
        SpecParseError: If decoding fails or the result is not a mapping.
    """
    errors: list[str] = []

    if fmt is not DocumentFormat.YAML:
        try:
            return _require_object(json.loads(text))
        except json.JSONDecodeError as exc:
            if fmt is DocumentFormat.JSON:
                raise SpecParseError(f"Invalid JSON: {exc}") from exc
            errors.append(f"JSON error: {exc}")

    try:
        return _require_object(yaml.safe_load(text))
    except yaml.YAMLError as exc:
        errors.append(f"YAML error: {exc}")

    raise SpecParseError(
        "Failed to parse spec as JSON or YAML\n  " + "\n  ".join(errors)
    )


def _require_object(document: Any) -> dict[str, Any]:
    if isinstance(document, dict):
        return document
    found = "empty document" if document is None else type(document).__name__
    raise SpecParseError(f"Spec must be a JSON/YAML object (got {found})")


def validate_spec_version(spec: dict[str, Any]) -> str:
    """Return the ``swagger`` or ``openapi`` version of *spec*.

    Raises:
        SpecParseError: For Swagger 1.x, OpenAPI 4+, or a document declaring
            neither field.
    """
    if "swagger" in spec:
        version = str(spec["swagger"])
        if not version.startswith("2."):
            raise SpecParseError(f"Swagger {version} is not supported. {SUPPORTED_VERSIONS}")
        return version

    if spec.get("openapi") is None:
        raise SpecParseError(
            "Missing 'openapi' or 'swagger' field. Is this an API specification?"
        )
    version = str(spec["openapi"])
    if not version.startswith("3."):
        raise SpecParseError(f"Unsupported OpenAPI version: {version}. {SUPPORTED_VERSIONS}")
    return version


def validate_document(spec: dict[str, Any]) -> str:
    """Check the version and the ``paths`` structure the extractor walks.

    Returns:
        The version string from :func:`validate_spec_version`.

    Raises:
        SpecParseError: If the version is unsupported, ``paths`` is missing
            or not a mapping, or a path item is not a mapping.
    """
    version = validate_spec_version(spec)

    if "paths" not in spec:
        raise SpecParseError("Missing 'paths' object")
    paths = spec["paths"]
    if not isinstance(paths, dict):
        raise SpecParseError(f"'paths' must be an object (got {type(paths).__name__})")
    bad = [path for path, item in paths.items() if not isinstance(item, dict)]
    if bad:
        raise SpecParseError(f"Path item for '{bad[0]}' must be an object")

    return version
