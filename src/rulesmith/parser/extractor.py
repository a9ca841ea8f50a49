"""Extract endpoints, parameters, request bodies and responses from a spec.

This module walks a preprocessed (``$ref``-inlined) spec dictionary and
builds one :class:`~rulesmith.models.EndpointInfo` per retained operation.
The reference-intact original document is walked in lockstep: wherever the
extractor picks a node in the processed tree it picks the node at the same
place in the original tree, and hands both to
:func:`~rulesmith.parser.schema.simplify_schema` so that schema names erased
by dereferencing can be recovered.

The single public entry point is :func:`extract_endpoints`.  Internally:

* ``_extract_endpoint`` -- one operation.
* ``_paired_parameters`` -- path-level then operation-level parameters,
  each paired with its original counterpart.
* ``_select_body_source`` -- the dialect adapter: decides whether the body
  comes from an OpenAPI 3 ``requestBody`` or a Swagger 2.0 ``in: body``
  parameter.
* ``_extract_request_body`` / ``_extract_responses`` -- normalise bodies
  and allow-listed responses.

Path-level parameters are listed before operation-level ones and are *not*
deduplicated; a consumer that needs one entry per name should prefer the
last occurrence.
"""

from __future__ import annotations

import enum
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from rulesmith.models import (
    EndpointInfo,
    ExtractorOptions,
    HTTPMethod,
    ParameterInfo,
    ParameterLocation,
    RequestBodyInfo,
    ResponseInfo,
)
from rulesmith.parser.resolver import resolve_pointer
from rulesmith.parser.schema import primary_type, recover_name, simplify_schema

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

RESPONSE_STATUS_CODES = ("200", "201", "204", "400", "401", "403", "404", "500")
"""Status codes kept in :attr:`EndpointInfo.responses`; all others are dropped."""

DEFAULT_TAG = "default"


class BodyDialect(str, enum.Enum):
    """How an operation declares its request body."""

    REQUEST_BODY = "requestBody"
    BODY_PARAMETER = "body"


@dataclass(frozen=True)
class _BodySource:
    """The raw body node chosen for an operation, in both documents."""

    dialect: BodyDialect
    node: dict[str, Any]
    original: Optional[dict[str, Any]]


def extract_endpoints(
    spec: dict[str, Any],
    original_spec: Optional[dict[str, Any]] = None,
    options: Optional[ExtractorOptions] = None,
) -> list[EndpointInfo]:
    """Extract every retained operation of *spec* as an :class:`EndpointInfo`.

    Paths are visited in document order and, within a path, methods in the
    order get, post, put, patch, delete, options, head.  An operation is
    skipped when:

    * its path matches one of ``options.exclude_paths``;
    * it is deprecated and ``options.exclude_deprecated`` is set; or
    * every one of its tags is in ``options.exclude_tags`` (an untagged
      operation counts as tagged ``default``).

    Neither document is modified.

    Args:
        spec: The preprocessed document, as returned by
            :func:`~rulesmith.parser.preprocessor.preprocess`.
        original_spec: The same document before preprocessing.  Without it
            schema names can only be recovered where the processed tree
            still holds a ``$ref``.
        options: Exclusion filters.  Defaults to :class:`ExtractorOptions()`.

    Returns:
        The endpoints, in extraction order.

    Example::

        raw = load_spec("petstore.yaml")
        endpoints = extract_endpoints(preprocess(raw), raw)
        for endpoint in endpoints:
            print(endpoint.operation_id, endpoint.request_body)
    """
    if options is None:
        options = ExtractorOptions()
    path_patterns = options.path_patterns()

    paths = spec.get("paths")
    if not isinstance(paths, dict):
        return []
    original_paths = original_spec.get("paths") if original_spec else None
    if not isinstance(original_paths, dict):
        original_paths = {}

    endpoints: list[EndpointInfo] = []
    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            continue
        if any(pattern.search(path) for pattern in path_patterns):
            logger.debug("Skipping excluded path %s", path)
            continue

        original_path_item = _as_dict(
            resolve_pointer(original_paths.get(path), original_spec)
        )

        for method in HTTPMethod:
            operation = path_item.get(method.value)
            if not isinstance(operation, dict):
                continue
            if options.exclude_deprecated and operation.get("deprecated"):
                logger.debug("Skipping deprecated %s %s", method.value.upper(), path)
                continue
            tags = _operation_tags(operation)
            if all(tag in options.exclude_tags for tag in tags):
                logger.debug(
                    "Skipping %s %s: all tags excluded", method.value.upper(), path
                )
                continue

            endpoints.append(
                _extract_endpoint(
                    spec,
                    path,
                    method,
                    path_item,
                    operation,
                    original_spec,
                    original_path_item,
                    _as_dict(original_path_item.get(method.value)),
                )
            )

    return endpoints


def _extract_endpoint(
    spec: dict[str, Any],
    path: str,
    method: HTTPMethod,
    path_item: dict[str, Any],
    operation: dict[str, Any],
    original_spec: Optional[dict[str, Any]],
    original_path_item: dict[str, Any],
    original_operation: dict[str, Any],
) -> EndpointInfo:
    """Build the :class:`EndpointInfo` for one operation."""
    operation_id = operation.get("operationId")
    if not isinstance(operation_id, str) or not operation_id:
        operation_id = generate_operation_id(method, path)

    pairs = _paired_parameters(
        path_item, operation, original_path_item, original_operation, original_spec
    )

    parameters: list[ParameterInfo] = []
    body_pair: Optional[tuple[dict[str, Any], Optional[dict[str, Any]]]] = None
    for param, original_param in pairs:
        if param.get("in") == "body":
            if body_pair is None:
                body_pair = (param, original_param)
            continue
        parameter = _extract_parameter(param)
        if parameter is not None:
            parameters.append(parameter)

    source = _select_body_source(operation, original_operation, body_pair, original_spec)
    request_body = (
        _extract_request_body(source, original_spec) if source is not None else None
    )

    return EndpointInfo(
        operation_id=operation_id,
        method=method,
        path=path,
        summary=operation.get("summary"),
        description=operation.get("description"),
        tags=_operation_tags(operation),
        deprecated=bool(operation.get("deprecated", False)),
        parameters=parameters,
        request_body=request_body,
        responses=_extract_responses(spec, operation, original_operation, original_spec),
    )


def generate_operation_id(method: HTTPMethod, path: str) -> str:
    """Synthesise an operation id from the method and path template.

    ``GET /api/v1/users/{id}`` becomes ``GET_API_V1_USERS_ID``.
    """
    clean = re.sub(r"[{}]", "", path).replace("/", "_")
    if clean.startswith("_"):
        clean = clean[1:]
    return f"{method.value.upper()}_{clean.upper()}"


def _operation_tags(operation: dict[str, Any]) -> list[str]:
    tags = operation.get("tags")
    if isinstance(tags, list) and tags:
        return [str(tag) for tag in tags]
    return [DEFAULT_TAG]


# --- Parameters ---


def _paired_parameters(
    path_item: dict[str, Any],
    operation: dict[str, Any],
    original_path_item: dict[str, Any],
    original_operation: dict[str, Any],
    original_spec: Optional[dict[str, Any]],
) -> list[tuple[dict[str, Any], Optional[dict[str, Any]]]]:
    """Return path-level then operation-level parameters with their originals.

    Each level is paired index by index with the same level of the original
    document; original entries that are ``$ref`` pointers (for example to
    Swagger 2.0 ``#/parameters/...``) are resolved.
    """
    pairs: list[tuple[dict[str, Any], Optional[dict[str, Any]]]] = []
    for processed_level, original_level in (
        (path_item.get("parameters"), original_path_item.get("parameters")),
        (operation.get("parameters"), original_operation.get("parameters")),
    ):
        processed_list = processed_level if isinstance(processed_level, list) else []
        original_list = original_level if isinstance(original_level, list) else []
        for index, param in enumerate(processed_list):
            if not isinstance(param, dict):
                continue
            original_param = None
            if index < len(original_list):
                original_param = _as_dict(
                    resolve_pointer(original_list[index], original_spec)
                ) or None
            pairs.append((param, original_param))
    return pairs


def _extract_parameter(param: dict[str, Any]) -> Optional[ParameterInfo]:
    """Convert a non-body parameter; unknown locations yield ``None``."""
    location_str = param.get("in")
    try:
        location = ParameterLocation(location_str)
    except ValueError:
        logger.debug(
            "Skipping parameter %r with unsupported location %r",
            param.get("name"),
            location_str,
        )
        return None

    schema = param.get("schema")
    if not isinstance(schema, dict) and any(
        key in param for key in ("type", "items", "enum")
    ):
        # Swagger 2.0 declares non-body parameter types on the parameter itself
        schema = param

    example = param.get("example")
    if example is None and isinstance(schema, dict):
        example = schema.get("example")

    return ParameterInfo(
        name=str(param.get("name", "")),
        location=location,
        required=bool(param.get("required", False)),
        type=parameter_type(schema),
        description=param.get("description"),
        example=example,
    )


def parameter_type(schema: Any) -> str:
    """Return the display type label of a parameter schema.

    ``string``, ``integer[]`` for arrays, ``"a" | "b"`` for enums,
    ``object`` when no type is declared and ``unknown`` without a schema.
    """
    if not isinstance(schema, dict):
        return "unknown"

    type_name = primary_type(schema.get("type"))
    items = schema.get("items")
    if type_name == "array" and isinstance(items, dict):
        return f"{parameter_type(items)}[]"

    enum_values = schema.get("enum")
    if isinstance(enum_values, list) and enum_values:
        return " | ".join(json.dumps(value, ensure_ascii=False) for value in enum_values)

    return type_name or "object"


# --- Request bodies ---


def _select_body_source(
    operation: dict[str, Any],
    original_operation: dict[str, Any],
    body_pair: Optional[tuple[dict[str, Any], Optional[dict[str, Any]]]],
    original_spec: Optional[dict[str, Any]],
) -> Optional[_BodySource]:
    """Pick the body declaration: ``requestBody`` first, then a body parameter."""
    request_body = operation.get("requestBody")
    if isinstance(request_body, dict):
        original_body = _as_dict(
            resolve_pointer(original_operation.get("requestBody"), original_spec)
        )
        return _BodySource(BodyDialect.REQUEST_BODY, request_body, original_body or None)
    if body_pair is not None:
        return _BodySource(BodyDialect.BODY_PARAMETER, body_pair[0], body_pair[1])
    return None


def _extract_request_body(
    source: _BodySource,
    original_spec: Optional[dict[str, Any]],
) -> Optional[RequestBodyInfo]:
    """Normalise either body dialect into a :class:`RequestBodyInfo`.

    ``requestBody`` objects prefer ``application/json`` content and otherwise
    use the first declared content type; a body without content types yields
    ``None``.  Body parameters are always ``application/json`` and need a
    ``schema``.
    """
    original = source.original or {}

    if source.dialect is BodyDialect.REQUEST_BODY:
        content = source.node.get("content")
        if not isinstance(content, dict) or not content:
            return None
        content_type = JSON_CONTENT_TYPE if JSON_CONTENT_TYPE in content else next(iter(content))
        media = _as_dict(content.get(content_type))
        original_media = _as_dict(_as_dict(original.get("content")).get(content_type))
        raw_schema = media.get("schema")
        original_schema = original_media.get("schema")
        example = _media_example(media)
    else:
        content_type = JSON_CONTENT_TYPE
        raw_schema = source.node.get("schema")
        if not isinstance(raw_schema, dict):
            return None
        original_schema = original.get("schema")
        example = None

    if example is None and isinstance(raw_schema, dict):
        example = raw_schema.get("example")

    schema_name = recover_name(original_schema, raw_schema)
    return RequestBodyInfo(
        required=bool(source.node.get("required", False)),
        content_type=content_type,
        schema_=simplify_schema(raw_schema, original_schema, schema_name, original_spec),
        schema_name=schema_name,
        example=example,
    )


# --- Responses ---


def _extract_responses(
    spec: dict[str, Any],
    operation: dict[str, Any],
    original_operation: dict[str, Any],
    original_spec: Optional[dict[str, Any]],
) -> list[ResponseInfo]:
    """Extract the allow-listed responses of an operation, in allow-list order.

    OpenAPI 3 responses are read from their ``application/json`` content.
    Swagger 2.0 responses carry ``schema`` directly; their content type is
    the first ``produces`` entry of the operation or document.
    """
    responses = _as_dict(operation.get("responses"))
    original_responses = _as_dict(
        resolve_pointer(original_operation.get("responses"), original_spec)
    )

    result: list[ResponseInfo] = []
    for status_code in RESPONSE_STATUS_CODES:
        response = _status_entry(responses, status_code)
        if not isinstance(response, dict):
            continue
        original_response = _as_dict(
            resolve_pointer(_status_entry(original_responses, status_code), original_spec)
        )

        json_media = _as_dict(_as_dict(response.get("content")).get(JSON_CONTENT_TYPE))
        original_json_media = _as_dict(
            _as_dict(original_response.get("content")).get(JSON_CONTENT_TYPE)
        )

        raw_schema = json_media.get("schema")
        if raw_schema is None:
            raw_schema = response.get("schema")
        original_schema = original_json_media.get("schema")
        if original_schema is None:
            original_schema = original_response.get("schema")

        content_type: Optional[str] = None
        example: Any = None
        if json_media:
            content_type = JSON_CONTENT_TYPE
            example = _media_example(json_media)
        elif isinstance(response.get("schema"), dict):
            content_type = _legacy_content_type(spec, operation)
            example = _as_dict(response.get("examples")).get(content_type)
        if example is None and isinstance(raw_schema, dict):
            example = raw_schema.get("example")

        schema_name = recover_name(original_schema, raw_schema)
        description = response.get("description")
        result.append(
            ResponseInfo(
                status_code=status_code,
                description=description if isinstance(description, str) else "",
                content_type=content_type,
                schema_=(
                    simplify_schema(raw_schema, original_schema, schema_name, original_spec)
                    if isinstance(raw_schema, dict)
                    else None
                ),
                schema_name=schema_name,
                example=example,
            )
        )

    return result


def _status_entry(responses: dict[Any, Any], status_code: str) -> Any:
    """Look up a status code whether YAML parsed the key as a string or an int."""
    if status_code in responses:
        return responses[status_code]
    return responses.get(int(status_code))


def _legacy_content_type(spec: dict[str, Any], operation: dict[str, Any]) -> str:
    for produces in (operation.get("produces"), spec.get("produces")):
        if isinstance(produces, list) and produces:
            return str(produces[0])
    return JSON_CONTENT_TYPE


def _media_example(media: dict[str, Any]) -> Any:
    """Return a media type's ``example``, else the value of its first ``examples`` entry."""
    example = media.get("example")
    if example is not None:
        return example
    examples = media.get("examples")
    if isinstance(examples, dict) and examples:
        first = next(iter(examples.values()))
        if isinstance(first, dict):
            return first.get("value")
    return None


def _as_dict(value: Any) -> dict[Any, Any]:
    return value if isinstance(value, dict) else {}
