"""Schema flattening, name recovery and simplification.

Dereferencing inlines every ``$ref``, which gives the extractor complete
shapes but erases the names of the declared types those shapes came from.
This module puts the names back by walking two congruent trees in lockstep:

* the *processed* node (references inlined) supplies the shape, and
* the *original* node (references intact) supplies the names.

The three building blocks are:

* :func:`effective_schema` -- merge an ``allOf`` composition into a single
  ``properties`` / ``type`` / ``enum`` / ``items`` / ``required`` view.
* :func:`extract_schema_name` -- recover the declared type name of a node
  from its ``$ref``, its composition branches, or its array items.
* :func:`simplify_schema` -- build the recursive
  :class:`~rulesmith.models.SimplifiedSchema` tree, naming every property
  and array item independently.

Nothing here raises on malformed input: missing or odd nodes simplify to an
``unknown`` type, and unresolvable references are treated as opaque nodes.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from rulesmith.models import SimplifiedSchema
from rulesmith.parser.resolver import resolve_pointer

logger = logging.getLogger(__name__)

ARRAY_MARKER = "[]"
"""Suffix appended to a recovered item name to name the array around it."""

_COMPOSITION_KEYS = ("allOf", "anyOf", "oneOf")


def effective_schema(
    schema: Any,
    document: Optional[dict[str, Any]] = None,
    _seen: frozenset[int] = frozenset(),
) -> dict[str, Any]:
    """Flatten *schema* and its ``allOf`` branches into one effective shape.

    The node is first resolved against *document* (so an original,
    reference-intact node can be flattened too).  Its own fields win over
    every branch; among branches:

    * ``properties`` are merged, a later branch replacing an earlier one on
      the same key;
    * ``type``, ``enum`` and ``items`` are taken from the first branch that
      declares them;
    * ``required`` names are unioned in first-seen order.

    Args:
        schema: A schema node (processed or original).
        document: The original document used to resolve ``$ref`` nodes.

    Returns:
        A dict with the keys ``properties`` (dict), ``type``, ``enum``,
        ``items`` and ``required`` (list).  Unset singular fields are ``None``.
    """
    result: dict[str, Any] = {
        "properties": {},
        "type": None,
        "enum": None,
        "items": None,
        "required": [],
    }
    resolved = resolve_pointer(schema, document)
    if not isinstance(resolved, dict) or id(resolved) in _seen:
        return result
    seen = _seen | {id(resolved)}

    own_properties = resolved.get("properties")
    if not isinstance(own_properties, dict):
        own_properties = {}
    result["properties"] = dict(own_properties)
    result["type"] = resolved.get("type")
    result["enum"] = resolved.get("enum")
    result["items"] = resolved.get("items")
    required = resolved.get("required")
    if isinstance(required, list):
        result["required"] = list(required)

    branches = resolved.get("allOf")
    if not isinstance(branches, list):
        return result

    for branch in branches:
        sub = effective_schema(branch, document, seen)
        for key, prop in sub["properties"].items():
            if key not in own_properties:
                result["properties"][key] = prop
        if result["type"] is None and sub["type"] is not None:
            result["type"] = sub["type"]
        if result["enum"] is None and sub["enum"] is not None:
            result["enum"] = sub["enum"]
        if result["items"] is None and sub["items"] is not None:
            result["items"] = sub["items"]
        result["required"] = list(dict.fromkeys(result["required"] + sub["required"]))

    return result


def extract_schema_name(schema: Any) -> Optional[str]:
    """Recover the declared type name a schema node was derived from.

    Rules, first match wins:

    1. A direct ``$ref`` -- the last segment of the pointer, as written
       (``~1`` and ``~0`` escapes are not undone).
    2. ``allOf`` / ``anyOf`` / ``oneOf`` -- the first branch, in declared
       order, that yields a name.
    3. ``type: array`` with ``items`` -- the item name with ``[]``
       appended, unless it already ends with ``[]``.

    The composition rule is a heuristic: it names the first named branch,
    which is not necessarily the branch that contributed a given field to
    :func:`effective_schema`.

    Returns:
        The name, or ``None`` when the node carries no naming information.
    """
    if not isinstance(schema, dict):
        return None

    ref = schema.get("$ref")
    if isinstance(ref, str):
        return ref.rsplit("/", 1)[-1]

    for key in _COMPOSITION_KEYS:
        branches = schema.get(key)
        if isinstance(branches, list):
            for branch in branches:
                found = extract_schema_name(branch)
                if found is not None:
                    return found

    if primary_type(schema.get("type")) == "array" and schema.get("items"):
        item_name = extract_schema_name(schema["items"])
        if item_name is not None:
            if item_name.endswith(ARRAY_MARKER):
                return item_name
            return f"{item_name}{ARRAY_MARKER}"

    return None


def recover_name(original: Any, processed: Any) -> Optional[str]:
    """Name a node from its original form, falling back to the processed one."""
    name = extract_schema_name(original)
    if name is None:
        name = extract_schema_name(processed)
    return name


def simplify_schema(
    schema: Any,
    original: Any = None,
    schema_name: Optional[str] = None,
    document: Optional[dict[str, Any]] = None,
    _expanding: frozenset[int] = frozenset(),
) -> SimplifiedSchema:
    """Build the simplified tree for a processed schema node.

    Args:
        schema: The processed (dereferenced) schema node.
        original: The same node in the original document, if any.  Its
            ``$ref`` pointers name the node and its children.
        schema_name: Name to attach to this node.  When ``None`` it is
            recovered from *original*, then from *schema*.
        document: The original document, used to resolve ``$ref`` nodes
            while flattening compositions.

    Returns:
        A :class:`~rulesmith.models.SimplifiedSchema` whose every property
        and array item carries its own recovered name.
    """
    if not isinstance(schema, dict):
        return SimplifiedSchema(type="unknown")
    if not isinstance(original, dict):
        original = None

    name = schema_name if schema_name is not None else recover_name(original, schema)
    description = schema.get("description")
    example = schema.get("example")
    if original is not None:
        if description is None:
            description = original.get("description")
        if example is None:
            example = original.get("example")

    effective = effective_schema(schema, document)
    effective_original = (
        effective_schema(original, document) if original is not None else None
    )

    type_label = primary_type(effective["type"])
    if type_label is None:
        type_label = "object" if effective["properties"] else "unknown"

    enum = effective["enum"] if isinstance(effective["enum"], list) else None
    fields: dict[str, Any] = {
        "type": type_label,
        "schema_name": name,
        "description": description,
        "example": example,
        "enum": enum,
        "required": effective["required"],
    }

    # Cyclic $ref left in place by the dereferencer: name it, don't expand it
    target = resolve_pointer(schema, document)
    if id(target) in _expanding:
        logger.debug("Not expanding %s again on the same branch", name or type_label)
        return SimplifiedSchema(**fields)
    expanding = _expanding | {id(target)}
    if original is not None:
        expanding |= {id(resolve_pointer(original, document))}

    if effective["properties"]:
        original_properties = (
            effective_original["properties"] if effective_original else {}
        )
        properties: dict[str, SimplifiedSchema] = {}
        for key, prop in effective["properties"].items():
            original_prop = original_properties.get(key)
            properties[key] = simplify_schema(
                prop,
                original_prop,
                recover_name(original_prop, prop),
                document,
                expanding,
            )
        fields["properties"] = properties

    if "array" in type_label:
        items = effective["items"] or schema.get("items")
        if isinstance(items, dict):
            original_items = None
            if effective_original is not None:
                original_items = effective_original["items"] or original.get("items")
            fields["items"] = simplify_schema(
                items,
                original_items,
                recover_name(original_items, items),
                document,
                expanding,
            )

    return SimplifiedSchema(**fields)


def primary_type(value: Any) -> Optional[str]:
    """Return a single type name; OpenAPI 3.1 type lists yield their first non-null entry."""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        non_null = [t for t in value if isinstance(t, str) and t != "null"]
        return non_null[0] if non_null else None
    return None
