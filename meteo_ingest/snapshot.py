"""Latest-outcome snapshot file (full overwrite every cycle)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

from converter import to_json_text


class SnapshotError(RuntimeError):
    pass


def write_snapshot(path: str | Path, document: Dict[str, Any]) -> Path:
    p = Path(path)
    tmp = p.with_name(p.name + ".tmp")
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(to_json_text(document), encoding="utf-8")
        os.replace(tmp, p)
    except OSError as e:
        raise SnapshotError(f"could not write snapshot {p}: {e}") from e
    return p
