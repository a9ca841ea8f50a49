"""Prepare a loaded spec for extraction.

:func:`preprocess` produces the *processed* document the extractor reads
shapes from: every resolvable ``$ref`` inlined (cycles left in place by
:func:`~rulesmith.parser.resolver.resolve_refs`) and internal-only vendor
extensions removed.  The input document is never modified, so callers keep
using it as the reference-intact original for schema name recovery.
"""

from __future__ import annotations

import logging
from typing import Any

from rulesmith.parser.resolver import resolve_refs

logger = logging.getLogger(__name__)

_INTERNAL_PREFIXES = ("x-internal", "x-hidden")


def preprocess(
    spec: dict[str, Any],
    remove_internal_extensions: bool = True,
) -> dict[str, Any]:
    """Return a dereferenced copy of *spec*.

    Args:
        spec: The raw spec dictionary.
        remove_internal_extensions: Drop ``x-internal*`` and ``x-hidden*``
            keys at any depth.

    Returns:
        A new dictionary; *spec* is left untouched.

    Raises:
        SpecParseError: If a reference is external or points nowhere.
    """
    processed = resolve_refs(spec)
    if remove_internal_extensions:
        removed = _remove_extensions(processed)
        if removed:
            logger.debug("Removed %d internal extension key(s)", removed)
    return processed


def _remove_extensions(obj: Any) -> int:
    """Strip internal extension keys from *obj* in place; return how many were removed."""
    removed = 0
    if isinstance(obj, list):
        for item in obj:
            removed += _remove_extensions(item)
    elif isinstance(obj, dict):
        for key in list(obj):
            if isinstance(key, str) and key.startswith(_INTERNAL_PREFIXES):
                del obj[key]
                removed += 1
            else:
                removed += _remove_extensions(obj[key])
    return removed
