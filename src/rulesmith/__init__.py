"""rulesmith -- Turn OpenAPI / Swagger specs into AI agent-optimized rule files.

This package reads an OpenAPI 3.x or Swagger 2.0 document, flattens its
``$ref`` pointers, recovers the schema names that flattening erased, and
writes one Markdown rule file per endpoint plus a small set of index files
that an AI coding agent can consult before calling the API.

Typical workflow::

    rulesmith generate -i openapi.yaml -o rules/   # write the rule files
    rulesmith inspect openapi.yaml                 # list extracted endpoints

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: Config-file discovery and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Process exit codes, one per error category.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
