"""JSON Pointer lookups for internal ``$ref`` references.

Two callers need references resolved, with opposite failure policies:

* :func:`resolve_refs` builds the dereferenced document the extractor reads
  shapes from. A broken or external reference there means the spec is
  unusable, so it raises :class:`~rulesmith.exceptions.SpecParseError`.
  A reference that is already being inlined on the current branch is a
  cycle; it is left in place as a ``$ref`` dict.
* :func:`resolve_pointer` looks up single nodes of the *original* document
  while schema names are recovered. It never raises: it stops at the last
  node it can reach.

Only internal references (``#/...``) are supported.
"""

from __future__ import annotations

from typing import Any, Optional

from rulesmith.exceptions import SpecParseError


class _PointerError(Exception):
    pass


def lookup_pointer(ref: str, root: dict[str, Any]) -> Any:
    """Return the value at ``#/a/b/0`` in *root*.

    Segments are unescaped per RFC 6901 (``~1`` is ``/``, ``~0`` is ``~``)
    and numeric segments index into lists.

    Raises:
        SpecParseError: For external references and pointers that do not
            lead anywhere.
    """
    try:
        return _walk(ref, root)
    except _PointerError as exc:
        raise SpecParseError(f"Cannot resolve $ref '{ref}': {exc}") from exc


def _walk(ref: str, root: dict[str, Any]) -> Any:
    if not ref.startswith("#/"):
        raise _PointerError("only internal references (#/...) are supported")

    current: Any = root
    for raw in ref[2:].split("/"):
        segment = raw.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            if segment not in current:
                raise _PointerError(f"key '{segment}' not found")
            current = current[segment]
        elif isinstance(current, list):
            if not segment.isdigit() or int(segment) >= len(current):
                raise _PointerError(f"invalid array index '{segment}'")
            current = current[int(segment)]
        else:
            raise _PointerError(f"cannot navigate into {type(current).__name__}")
    return current


def resolve_refs(spec: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *spec* with every internal ``$ref`` inlined.

    Each occurrence of a reference gets its own copy of the target, so two
    properties pointing at ``Address`` end up as equal but distinct dicts.
    *spec* itself is not modified.

    Raises:
        SpecParseError: If a reference is external or its target is missing.

    Example::

        resolved = resolve_refs(load_spec("petstore.yaml"))
        # responses now hold the Pet schema itself, not {"$ref": ...}
    """
    return _inline(spec, spec, frozenset())


def _inline(node: Any, root: dict[str, Any], stack: frozenset[str]) -> Any:
    """Copy *node*, replacing references not already on *stack* with their targets."""
    if isinstance(node, list):
        return [_inline(item, root, stack) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str) and ref not in stack:
        return _inline(lookup_pointer(ref, root), root, stack | {ref})
    # plain node, or a cyclic reference kept as-is
    return {key: _inline(value, root, stack) for key, value in node.items()}


def resolve_pointer(node: Any, document: Optional[dict[str, Any]]) -> Any:
    """Return the node a ``{"$ref": ...}`` dict points to, following aliases.

    ``Alias -> Pet`` resolves to ``Pet``. The chain stops at the last node
    that could be reached: when ``Alias`` points at a broken or external
    pointer, ``Alias`` itself comes back. *node* is returned unchanged when
    it is not a reference, *document* is ``None``, its own pointer cannot be
    followed to a dict, or the alias chain loops.
    """
    if document is None:
        return node

    current = node
    visited: set[str] = set()
    while isinstance(current, dict):
        ref = current.get("$ref")
        if not isinstance(ref, str):
            break
        if ref in visited:
            return node
        visited.add(ref)
        try:
            target = _walk(ref, document)
        except _PointerError:
            break
        if not isinstance(target, dict):
            break
        current = target
    return current
