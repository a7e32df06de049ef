"""
Patches - JSON merge-patch (RFC 7386) diffs between resource snapshots.

A patch is a plain dict with field overrides and ``None`` for deletions.
Persistence is split in two: the spec/metadata part and the status part,
because control planes usually store them through separate endpoints.
"""

from typing import Any, Dict, Mapping

from resources import Resource

STATUS_FIELD = "status"


def diff_merge_patch(old: Mapping[str, Any], new: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Calculate the merge-patch that turns ``old`` into ``new``.

    Nested mappings are diffed recursively; lists and scalars are replaced
    as a whole.
    """
    patch: Dict[str, Any] = {}
    for key in old:
        if key not in new:
            patch[key] = None
    for key, value in new.items():
        if key not in old:
            patch[key] = value
            continue
        old_value = old[key]
        if isinstance(old_value, Mapping) and isinstance(value, Mapping):
            nested = diff_merge_patch(old_value, value)
            if nested:
                patch[key] = nested
        elif old_value != value:
            patch[key] = value
    return patch


def apply_merge_patch(target: Any, patch: Any) -> Any:
    """Apply a merge-patch to a JSON-like value and return the new value."""
    if not isinstance(patch, Mapping):
        return patch
    result = dict(target) if isinstance(target, Mapping) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = apply_merge_patch(result.get(key), value)
    return result


def dump(instance: Resource) -> Dict[str, Any]:
    return instance.model_dump(mode="json")


def build_spec_patch(base: Resource, instance: Resource) -> Dict[str, Any]:
    """Merge-patch for everything except the observed state."""
    old = {k: v for k, v in dump(base).items() if k != STATUS_FIELD}
    new = {k: v for k, v in dump(instance).items() if k != STATUS_FIELD}
    return diff_merge_patch(old, new)


def build_status_patch(base: Resource, instance: Resource) -> Dict[str, Any]:
    """Merge-patch for the observed state only."""
    old = {STATUS_FIELD: dump(base).get(STATUS_FIELD)}
    new = {STATUS_FIELD: dump(instance).get(STATUS_FIELD)}
    return diff_merge_patch(old, new)
