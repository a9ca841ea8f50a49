"""Errors that end a rulesmith command.

Each error knows the exit code it ends the process with. Commands let them
propagate; :func:`rulesmith.app.main` prints the message and exits with
``exc.exit_code``::

    RulesmithError          1
    ├── ConfigError         1
    ├── InvalidUsageError   2
    ├── SpecParseError      3
    └── OutputError         4

Schema and operation extraction never raise these. A schema node that
cannot be understood is reported as type ``unknown`` and the run goes on.
"""

from __future__ import annotations

from typing import Optional

from rulesmith import exit_codes


class RulesmithError(Exception):
    """An error the CLI reports as a one-line message instead of a traceback."""

    exit_code: int = exit_codes.EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: Optional[int] = None) -> None:
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(RulesmithError):
    """The config file is missing, cannot be decoded, or holds an invalid option."""


class InvalidUsageError(RulesmithError):
    exit_code = exit_codes.EXIT_INVALID_USAGE


class SpecParseError(RulesmithError):
    """The document could not be read, decoded, version-checked or dereferenced."""

    exit_code = exit_codes.EXIT_SPEC_PARSE_ERROR


class OutputError(RulesmithError):
    exit_code = exit_codes.EXIT_OUTPUT_ERROR
