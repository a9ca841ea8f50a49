"""Canonical Pydantic models shared across all rulesmith modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Configuration models** -- read from ``rulesmith.json`` / ``rulesmith.yaml``
and merged with CLI flags:
    :class:`BusinessRule` and :class:`RuleSmithConfig`.

**Extractor output models** -- produced by the spec extractor and consumed by
the rule renderer:
    :class:`HTTPMethod`, :class:`ParameterLocation`, :class:`ParameterInfo`,
    :class:`SimplifiedSchema`, :class:`RequestBodyInfo`, :class:`ResponseInfo`,
    :class:`EndpointInfo`, :class:`ExtractorOptions` and :class:`RuleOutput`.

Extractor output models are frozen: an :class:`EndpointInfo` is built once
per retained operation and never changes afterwards. Fields that are
camelCase in the rendered JSON (``operationId``, ``schemaName``, ...) carry
an alias and accept either spelling on input.
"""

from __future__ import annotations

import enum
import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Config ---


class BusinessRule(BaseModel):
    """Hand-written guidance attached to one endpoint's rule file.

    Looked up by ``operationId`` first, then by ``"METHOD /path"``.

    Example::

        BusinessRule(
            preconditions=["The pet must exist"],
            error_handling={"404": "Tell the user the pet was not found"},
        )
    """

    model_config = ConfigDict(populate_by_name=True)

    preconditions: list[str] = Field(default_factory=list)
    error_handling: dict[str, str] = Field(
        default_factory=dict, alias="errorHandling"
    )
    notes: list[str] = Field(default_factory=list)


class RuleSmithConfig(BaseModel):
    """Effective configuration for one ``rulesmith generate`` run.

    Loaded from the project config file by
    :func:`~rulesmith.config.load_config_file` and overlaid with CLI flags by
    :func:`~rulesmith.config.resolve_config`. Keys may be written in
    snake_case or camelCase.
    """

    model_config = ConfigDict(populate_by_name=True)

    input: Optional[str] = Field(
        default=None, description="OpenAPI spec file path or URL"
    )
    output: Optional[str] = Field(
        default=None, description="Directory the rule files are written to"
    )
    split_by_domain: bool = Field(
        default=True,
        alias="splitByDomain",
        description="Write each endpoint under a folder named after its first tag",
    )
    language: Literal["ko", "en"] = Field(
        default="ko", description="Language of the rule file labels"
    )
    include_examples: bool = Field(
        default=True,
        alias="includeExamples",
        description="Use spec examples in the JSON samples",
    )
    exclude_deprecated: bool = Field(default=True, alias="excludeDeprecated")
    business_rules: dict[str, BusinessRule] = Field(
        default_factory=dict, alias="businessRules"
    )
    exclude_tags: list[str] = Field(default_factory=list, alias="excludeTags")
    exclude_paths: list[str] = Field(
        default_factory=list,
        alias="excludePaths",
        description="Regular expressions matched against path templates",
    )


# --- Extractor Output Models ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods the extractor visits, in canonical iteration order."""

    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"
    OPTIONS = "options"
    HEAD = "head"


class ParameterLocation(str, enum.Enum):
    """Locations where a non-body parameter can appear, per the ``in`` field."""

    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


class ParameterInfo(BaseModel):
    """A single path/query/header/cookie parameter of an endpoint.

    ``type`` is a display label rather than a JSON Schema type: arrays read
    ``string[]`` and enums read ``"a" | "b"``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    location: ParameterLocation = Field(alias="in")
    required: bool = False
    type: str = "unknown"
    description: Optional[str] = None
    example: Any = None


class SimplifiedSchema(BaseModel):
    """One node of the simplified schema tree.

    ``schema_name`` is the declared type this node was expanded from (for
    example ``Pet`` or ``Pet[]``), never a structural label. Each node owns
    its ``properties`` and ``items`` children; a schema referenced twice in
    the source appears as two independent subtrees.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str = "unknown"
    schema_name: Optional[str] = Field(default=None, alias="schemaName")
    description: Optional[str] = None
    example: Any = None
    enum: Optional[list[Any]] = None
    required: Optional[list[str]] = None
    properties: Optional[dict[str, SimplifiedSchema]] = None
    items: Optional[SimplifiedSchema] = None


class RequestBodyInfo(BaseModel):
    """Normalised request body, whichever dialect declared it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    required: bool = False
    content_type: str = Field(alias="contentType")
    schema_: SimplifiedSchema = Field(alias="schema")
    schema_name: Optional[str] = Field(default=None, alias="schemaName")
    example: Any = None


class ResponseInfo(BaseModel):
    """Normalised response for one allow-listed status code."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status_code: str = Field(alias="statusCode")
    description: str = ""
    content_type: Optional[str] = Field(default=None, alias="contentType")
    schema_: Optional[SimplifiedSchema] = Field(default=None, alias="schema")
    schema_name: Optional[str] = Field(default=None, alias="schemaName")
    example: Any = None


class EndpointInfo(BaseModel):
    """A single extracted API operation (one path template + HTTP method).

    Each endpoint becomes exactly one rule file. ``operation_id`` is the
    declared ``operationId`` or, when absent, one synthesised from the
    method and path (``GET /pets/{id}`` -> ``GET_PETS_ID``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    operation_id: str = Field(alias="operationId")
    method: HTTPMethod
    path: str
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=lambda: ["default"])
    deprecated: bool = False
    parameters: list[ParameterInfo] = Field(default_factory=list)
    request_body: Optional[RequestBodyInfo] = Field(default=None, alias="requestBody")
    responses: list[ResponseInfo] = Field(default_factory=list)


class ExtractorOptions(BaseModel):
    """Filters applied by :func:`~rulesmith.parser.extractor.extract_endpoints`.

    ``exclude_paths`` holds regular expressions searched anywhere in the raw
    path template; they are compiled when the options are built so a bad
    pattern fails early rather than in the middle of an extraction.
    """

    model_config = ConfigDict(frozen=True)

    exclude_tags: set[str] = Field(default_factory=set)
    exclude_paths: list[str] = Field(default_factory=list)
    exclude_deprecated: bool = True

    @field_validator("exclude_paths")
    @classmethod
    def _check_patterns(cls, patterns: list[str]) -> list[str]:
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(
                    f"Invalid exclude path pattern {pattern!r}: {exc}"
                ) from exc
        return patterns

    def path_patterns(self) -> list[re.Pattern[str]]:
        """Return the compiled ``exclude_paths`` patterns."""
        return [re.compile(pattern) for pattern in self.exclude_paths]


class RuleOutput(BaseModel):
    """Summary of one rule file written by the renderer."""

    model_config = ConfigDict(frozen=True)

    operation_id: str
    domain: str
    filename: str
    content: str
    method: str
    path: str
    summary: Optional[str] = None
    request_schema_name: Optional[str] = None
    response_schema_name: Optional[str] = None
