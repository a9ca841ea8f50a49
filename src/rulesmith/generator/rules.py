"""Render extracted endpoints into Markdown rule files.

Each :class:`~rulesmith.models.EndpointInfo` becomes one rule file with four
sections:

* **Purpose** -- summary and description.
* **Interface** -- method, URL and path / query / header parameters.
* **Data Guide** -- request body and each response, with the declared type
  names, the nested type names found inside them and a JSON example
  synthesised from the simplified schema.
* **Business Rules** -- optional hand-written guidance from the config file.

Three index files are written alongside: ``README.md``, ``agent.md`` and
``llms.txt``. All files are rendered from the Jinja2 templates in
``generator/templates/`` and written with
:func:`~rulesmith.config.atomic_write`.
"""

from __future__ import annotations

import json
import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from rulesmith.config import atomic_write
from rulesmith.exceptions import OutputError
from rulesmith.models import (
    BusinessRule,
    EndpointInfo,
    ParameterLocation,
    RequestBodyInfo,
    ResponseInfo,
    RuleOutput,
    SimplifiedSchema,
)

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
"""Path to the Jinja2 template directory (``generator/templates/``)."""

DEFAULT_DOMAIN = "default"

# tags and operation ids come from the document and may contain these
_PATH_SEPARATORS = re.compile(r"[/\\]")

LABELS: dict[str, dict[str, str]] = {
    "ko": {
        "purpose": "🎯 목적",
        "interface": "🔗 인터페이스",
        "data_guide": "📦 데이터 가이드",
        "business_rules": "⚠️ 비즈니스 지침",
        "method": "Method",
        "url": "URL",
        "path_params": "Path Parameters",
        "query_params": "Query Parameters",
        "header_params": "Header Parameters",
        "request_body": "Request Body",
        "response": "Response",
        "required": "필수",
        "optional": "선택",
        "preconditions": "선행 조건",
        "error_handling": "에러 처리",
        "notes": "참고 사항",
        "nested_types": "중첩 타입",
        "no_description": "(설명 없음)",
    },
    "en": {
        "purpose": "🎯 Purpose",
        "interface": "🔗 Interface",
        "data_guide": "📦 Data Guide",
        "business_rules": "⚠️ Business Rules",
        "method": "Method",
        "url": "URL",
        "path_params": "Path Parameters",
        "query_params": "Query Parameters",
        "header_params": "Header Parameters",
        "request_body": "Request Body",
        "response": "Response",
        "required": "required",
        "optional": "optional",
        "preconditions": "Preconditions",
        "error_handling": "Error Handling",
        "notes": "Notes",
        "nested_types": "Nested Types",
        "no_description": "(no description)",
    },
}

_PARAMETER_GROUPS = (
    (ParameterLocation.PATH, "path_params"),
    (ParameterLocation.QUERY, "query_params"),
    (ParameterLocation.HEADER, "header_params"),
)


def generate_rules(
    endpoints: list[EndpointInfo],
    output_dir: str | Path,
    split_by_domain: bool = True,
    include_examples: bool = True,
    language: str = "ko",
    business_rules: Optional[dict[str, BusinessRule]] = None,
) -> list[RuleOutput]:
    """Write one rule file per endpoint plus the README, agent and llms index files.

    Args:
        endpoints: Endpoints in extraction order.
        output_dir: Root directory for the generated files. Created if
            missing; existing files with the same names are overwritten.
        split_by_domain: Place each rule file under a folder named after the
            endpoint's first tag. Tags and operation ids are reduced to a
            single path component: separators become ``_`` and leading dots
            are dropped.
        include_examples: Prefer schema examples over type placeholders in
            the JSON samples.
        language: ``"ko"`` or ``"en"`` section labels.
        business_rules: Extra guidance keyed by ``operationId`` or by
            ``"METHOD /path"``.

    Returns:
        One :class:`~rulesmith.models.RuleOutput` per endpoint, in input order.

    Raises:
        OutputError: If a file cannot be written, would land outside
            *output_dir*, or *language* is unknown.
    """
    if language not in LABELS:
        raise OutputError(f"Unsupported language: {language!r} (expected 'ko' or 'en')")

    output_path = Path(output_dir)
    labels = LABELS[language]
    rules = business_rules or {}
    env = _create_jinja_env()

    outputs: list[RuleOutput] = []
    for endpoint in endpoints:
        domain = (endpoint.tags[0] if endpoint.tags else DEFAULT_DOMAIN) if split_by_domain else ""
        relative = _rule_path(endpoint.operation_id, domain, split_by_domain)
        filepath = output_path / relative
        if not filepath.resolve().is_relative_to(output_path.resolve()):
            raise OutputError(
                f"Refusing to write {filepath}: outside the output directory {output_path}"
            )

        method = endpoint.method.value.upper()
        business_rule = rules.get(endpoint.operation_id) or rules.get(f"{method} {endpoint.path}")

        content = env.get_template("rule.md.j2").render(
            **_rule_context(endpoint, labels, include_examples, business_rule)
        )
        _write(filepath, content)

        outputs.append(
            RuleOutput(
                operation_id=endpoint.operation_id,
                domain=domain,
                filename=str(filepath),
                content=content,
                method=method,
                path=endpoint.path,
                summary=endpoint.summary,
                request_schema_name=(
                    endpoint.request_body.schema_name if endpoint.request_body else None
                ),
                response_schema_name=_success_schema_name(endpoint.responses),
            )
        )

    context = {
        "language": language,
        "split_by_domain": split_by_domain,
        "domains": _index_entries(outputs, split_by_domain),
    }
    _render_template(env, "readme.md.j2", output_path / "README.md", context)
    _render_template(env, "agent.md.j2", output_path / "agent.md", context)
    _render_template(env, "llms.txt.j2", output_path / "llms.txt", context)

    logger.debug("Generated %d rule files in %s", len(outputs), output_path)
    return outputs


def to_kebab_case(value: str) -> str:
    """Convert a camelCase identifier to kebab-case.

    ``getPetById`` becomes ``get-pet-by-id`` and ``getHTTPStatus`` becomes
    ``get-http-status``. Synthesised ids such as ``GET_PETS_ID`` are only
    lowercased.
    """
    value = re.sub(r"([a-z])([A-Z])", r"\1-\2", value)
    value = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1-\2", value)
    return value.lower()


def build_example(schema: SimplifiedSchema, use_examples: bool = True) -> Any:
    """Synthesise a JSON-compatible sample value for a simplified schema.

    The node's own ``example`` wins when *use_examples* is set. Otherwise
    enums render as their values joined by ``" | "`` and every other type
    gets a placeholder: ``"string"``, ``0``, ``true``, a one-item list, an
    object of its properties, or the type label itself.
    """
    if use_examples and schema.example is not None:
        return schema.example

    if schema.enum:
        return " | ".join(
            value if isinstance(value, str) else json.dumps(value) for value in schema.enum
        )

    if schema.type == "string":
        return "string"
    if schema.type in ("number", "integer"):
        return 0
    if schema.type == "boolean":
        return True
    if schema.type == "array":
        if schema.items is not None:
            return [build_example(schema.items, use_examples)]
        return []
    if schema.type == "object":
        return {
            key: build_example(prop, use_examples)
            for key, prop in (schema.properties or {}).items()
        }
    return schema.type


def schema_to_json_example(schema: SimplifiedSchema, use_examples: bool = True) -> str:
    return json.dumps(build_example(schema, use_examples), indent=2, ensure_ascii=False)


def collect_nested_schema_names(
    schema: SimplifiedSchema, root_name: Optional[str] = None
) -> list[str]:
    """Return the sorted, distinct schema names inside *schema*, except *root_name*."""
    names: set[str] = set()
    stack = [schema]
    while stack:
        node = stack.pop()
        if node.schema_name and node.schema_name != root_name:
            names.add(node.schema_name)
        if node.properties:
            stack.extend(node.properties.values())
        if node.items is not None:
            stack.append(node.items)
    return sorted(names)


# --- Template context ---


def _rule_context(
    endpoint: EndpointInfo,
    labels: dict[str, str],
    include_examples: bool,
    business_rule: Optional[BusinessRule],
) -> dict[str, Any]:
    purpose: list[str] = []
    if endpoint.summary:
        purpose.append(endpoint.summary)
    if endpoint.description and endpoint.description != endpoint.summary:
        purpose.append(endpoint.description)
    if not purpose:
        purpose.append(labels["no_description"])

    parameter_groups = []
    for location, label_key in _PARAMETER_GROUPS:
        params = [p for p in endpoint.parameters if p.location == location]
        if params:
            parameter_groups.append({"label": labels[label_key], "params": params})

    return {
        "endpoint": endpoint,
        "method": endpoint.method.value.upper(),
        "labels": labels,
        "purpose": purpose,
        "parameter_groups": parameter_groups,
        "request": (
            _request_section(endpoint.request_body, labels, include_examples)
            if endpoint.request_body is not None
            else None
        ),
        "responses": [
            _response_section(response, labels, include_examples)
            for response in endpoint.responses
        ],
        "business_rule": business_rule,
    }


def _request_section(
    body: RequestBodyInfo, labels: dict[str, str], include_examples: bool
) -> dict[str, Any]:
    heading = labels["request_body"]
    if body.schema_name:
        heading = f"{heading} (`{body.schema_name}`)"
    return {
        "heading": heading,
        "content_type": body.content_type,
        "required": "Yes" if body.required else "No",
        "nested_types": collect_nested_schema_names(body.schema_, body.schema_name),
        "example": schema_to_json_example(body.schema_, include_examples),
    }


def _response_section(
    response: ResponseInfo, labels: dict[str, str], include_examples: bool
) -> dict[str, Any]:
    heading = f"{labels['response']} ({response.status_code})"
    if response.schema_name:
        heading = f"{heading} - `{response.schema_name}`"
    section: dict[str, Any] = {
        "heading": heading,
        "description": response.description,
        "nested_types": [],
        "example": None,
    }
    if response.schema_ is not None:
        section["nested_types"] = collect_nested_schema_names(
            response.schema_, response.schema_name
        )
        section["example"] = schema_to_json_example(response.schema_, include_examples)
    return section


def _index_entries(
    outputs: list[RuleOutput], split_by_domain: bool
) -> dict[str, list[str]]:
    """Group ``llms.txt`` lines by domain, keeping first-seen domain order."""
    domains: dict[str, list[str]] = defaultdict(list)
    for rule in outputs:
        domain = rule.domain or DEFAULT_DOMAIN
        entry = f"{rule.method} {rule.path} -> {_rule_path(rule.operation_id, domain, split_by_domain)}"
        hints = []
        if rule.request_schema_name:
            hints.append(f"req:{rule.request_schema_name}")
        if rule.response_schema_name:
            hints.append(f"res:{rule.response_schema_name}")
        if hints:
            entry += f" [{','.join(hints)}]"
        domains[domain].append(entry)
    return dict(domains)


def _path_segment(name: str, fallback: str) -> str:
    """Make *name* a single relative path component (no separators, no leading dot)."""
    segment = _PATH_SEPARATORS.sub("_", name).lstrip(".")
    return segment or fallback


def _rule_path(operation_id: str, domain: str, split_by_domain: bool) -> str:
    filename = f"{_path_segment(to_kebab_case(operation_id), 'operation')}.md"
    if not split_by_domain:
        return filename
    return f"{_path_segment(domain, DEFAULT_DOMAIN)}/{filename}"


def _success_schema_name(responses: list[ResponseInfo]) -> Optional[str]:
    for response in responses:
        if response.status_code.startswith("2"):
            return response.schema_name
    return None


# --- Rendering ---


def _create_jinja_env() -> Environment:
    """Create the Jinja2 environment for the rule templates.

    Autoescape stays off for the Markdown and text templates; block trimming
    keeps the template control lines out of the output.
    """
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(disabled_extensions=("md.j2", "txt.j2")),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["code"] = lambda value: f"`{value}`"
    return env


def _render_template(
    env: Environment,
    template_name: str,
    output_path: Path,
    context: dict[str, Any],
) -> None:
    """Render a template and write it to *output_path*."""
    _write(output_path, env.get_template(template_name).render(**context))


def _write(path: Path, content: str) -> None:
    try:
        atomic_write(path, content)
    except OSError as exc:
        raise OutputError(f"Cannot write {path}: {exc}") from exc
    logger.debug("Wrote %s", path)
