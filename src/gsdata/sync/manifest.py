"""Digest manifest in ``md5sum -c`` format."""

import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Union

from .models import LocalEntry, SyncAction, SyncOutcome


def select_manifest_entries(local: Iterable[LocalEntry], outcomes: Iterable[SyncOutcome]) -> List[LocalEntry]:
    """Local entries whose remote copy now matches: uploaded or skipped successfully."""
    synchronized = {
        outcome.key
        for outcome in outcomes
        if outcome.succeeded and outcome.action in (SyncAction.UPLOAD, SyncAction.SKIP)
    }
    return [entry for entry in local if entry.relative_path in synchronized]


def render_manifest(entries: Iterable[LocalEntry]) -> str:
    """One ``<digest>  <path>`` line per entry, sorted by path."""
    ordered = sorted(entries, key=lambda entry: entry.relative_path)
    return "".join(f"{entry.content_digest}  {entry.relative_path}\n" for entry in ordered)


def write_manifest(entries: Iterable[LocalEntry], output_path: Union[str, Path]) -> Path:
    """Write the manifest, replacing any previous one atomically."""
    output_path = Path(output_path)
    content = render_manifest(entries)

    fd, tmp_name = tempfile.mkstemp(prefix=".md5sum-", dir=output_path.parent)
    try:
        # Undecodable file names go back out as their original bytes
        with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape", newline="\n") as f:
            f.write(content)
        os.replace(tmp_name, output_path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    return output_path
