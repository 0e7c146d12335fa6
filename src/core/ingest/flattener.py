# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Flattener
# Collapses nested objects into a single-level field mapping
# ═══════════════════════════════════════════════════════════════

from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .base import FieldValue


def flatten_record(
    nested: Mapping[str, Any],
    dest: Optional[Dict[str, FieldValue]] = None,
) -> Dict[str, FieldValue]:
    """
    Flatten a nested mapping into one level.

    Child keys of nested mappings are re-emitted at the top level without
    any prefix, so ``{"meta": {"ip": "1.2.3.4"}}`` becomes
    ``{"ip": "1.2.3.4"}``. Lists and scalars are copied as opaque values and
    never recursed into.

    Traversal is depth-first in insertion order (document order for parsed
    JSON) and the last visited key wins on collision:

        >>> flatten_record({"a": {"id": 1}, "b": {"id": 2}})
        {'id': 2}
        >>> flatten_record({"id": 0, "meta": {"id": 3}})
        {'id': 3}

    Uses an explicit stack, so nesting depth is not bounded by the
    interpreter recursion limit.

    Args:
        nested: Mapping to flatten (not modified)
        dest: Optional mapping to write into

    Returns:
        The flattened mapping (``dest`` if given)
    """
    flat: Dict[str, FieldValue] = {} if dest is None else dest
    stack: List[Iterator[Tuple[str, Any]]] = [iter(nested.items())]

    while stack:
        try:
            key, value = next(stack[-1])
        except StopIteration:
            stack.pop()
            continue

        if isinstance(value, Mapping):
            stack.append(iter(value.items()))
        else:
            flat[key] = value

    return flat
