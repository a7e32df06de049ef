"""
Finalizers - Helpers to block and allow the final removal of a resource.

A finalizer is a durable marker on the resource's metadata. While it is
present, the control plane keeps the resource around after deletion was
requested, so the reconciler can run its cleanup steps first.
"""

from resources import Resource


def is_deletion_ongoing(instance: Resource) -> bool:
    return instance.metadata.deletion_timestamp is not None


def is_deletion_blocked(instance: Resource, finalizer: str) -> bool:
    return finalizer in instance.metadata.finalizers


def block_deletion(instance: Resource, finalizer: str) -> bool:
    """
    Add the finalizer unless it is already present.

    Returns:
        True if the metadata was changed
    """
    if finalizer in instance.metadata.finalizers:
        return False
    instance.metadata.finalizers.append(finalizer)
    return True


def allow_deletion(instance: Resource, finalizer: str) -> bool:
    """
    Remove every occurrence of the finalizer.

    Returns:
        True if the metadata was changed
    """
    changed = False
    while finalizer in instance.metadata.finalizers:
        instance.metadata.finalizers.remove(finalizer)
        changed = True
    return changed
