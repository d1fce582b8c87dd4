"""Difference computation between local files and bucket objects."""

from typing import Dict, Iterable, Optional

from .exclusions import ExclusionSet
from .models import LocalEntry, SyncAction, SyncPlan
from ..storage.base import RemoteEntry


def needs_upload(local: LocalEntry, remote: RemoteEntry, encrypted: bool = False) -> bool:
    """Whether the remote object fails to reflect the local file.

    Objects uploaded encrypted are compared through the plaintext digest and
    size recorded in their metadata. A change of encryption mode always
    re-uploads, as does a remote object with no usable digest.
    """
    if remote.encrypted != encrypted:
        return True

    if encrypted:
        digest, size = remote.plaintext_digest, remote.plaintext_size
    else:
        digest, size = remote.digest, remote.size_bytes

    if not digest:
        return True
    if size is not None and size != local.size_bytes:
        return True
    return digest.lower() != local.content_digest.lower()


def build_plan(
    local: Iterable[LocalEntry],
    remote: Iterable[RemoteEntry],
    purge: bool,
    encrypted: bool = False,
    exclusions: Optional[ExclusionSet] = None
) -> SyncPlan:
    """Compute the action for every key.

    Local state is authoritative: each local file is uploaded or skipped, and
    a remote-only key is deleted when ``purge`` is set and left out of the
    plan otherwise. Remote keys matching ``exclusions`` are never planned,
    so purge leaves them in place.
    """
    local_by_key: Dict[str, LocalEntry] = {}
    for entry in local:
        if entry.relative_path in local_by_key:
            raise ValueError(f"Duplicate local path: {entry.relative_path}")
        local_by_key[entry.relative_path] = entry

    remote_by_key: Dict[str, RemoteEntry] = {
        entry.key: entry
        for entry in remote
        if exclusions is None or not exclusions.matches(entry.key)
    }

    actions: Dict[str, SyncAction] = {}
    for key in sorted(local_by_key):
        remote_entry = remote_by_key.get(key)
        if remote_entry is None or needs_upload(local_by_key[key], remote_entry, encrypted):
            actions[key] = SyncAction.UPLOAD
        else:
            actions[key] = SyncAction.SKIP

    if purge:
        for key in sorted(remote_by_key.keys() - local_by_key.keys()):
            actions[key] = SyncAction.DELETE

    return SyncPlan(actions)
