"""Disk-backed snapshot archive and run log."""
from __future__ import annotations

import base64
import binascii
import io
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from PIL import Image

from exceptions import PersistenceError
from ports import MemoryStore, SnapshotStore
from run_types import Goal, RunReport, Snapshot, StepLog


class DiskSnapshotStore(SnapshotStore):
    """
    Writes snapshot images as PNG files under one directory per run.

    The initial observation is stored as `start.png`, later ones as
    `step_NNN.png`. Snapshots without an image only create the directory.
    """

    def __init__(self, base_dir: Path, logger: Optional[logging.Logger] = None):
        self.base_dir = Path(base_dir)
        self.logger = logger or logging.getLogger("stores")

    def path_for(self, run_id: str, step: Optional[int]) -> Path:
        name = "start.png" if step is None else f"step_{step:03d}.png"
        return self.base_dir / run_id / name

    async def save(self, run_id: str, step: Optional[int], snapshot: Snapshot) -> None:
        target = self.path_for(run_id, step)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if not snapshot.image_base64:
                return
            raw = base64.b64decode(snapshot.image_base64, validate=True)
            with Image.open(io.BytesIO(raw)) as image:
                image.save(target, format="PNG")
        except (binascii.Error, ValueError, OSError) as e:
            raise PersistenceError(f"Failed to archive snapshot: {e}", path=str(target)) from e
        self.logger.debug(f"Snapshot saved to {target}")


class JsonlMemoryStore(MemoryStore):
    """
    Appends run lifecycle events to `<base>/<run_id>/run.jsonl`.

    The final report is also written in full to `report.json` next to it.
    """

    def __init__(self, base_dir: Path, logger: Optional[logging.Logger] = None):
        self.base_dir = Path(base_dir)
        self.logger = logger or logging.getLogger("stores")

    def run_dir(self, run_id: str) -> Path:
        return self.base_dir / run_id

    def _append(self, run_id: str, event: str, payload: Dict[str, Any]) -> None:
        path = self.run_dir(run_id) / "run.jsonl"
        record = {
            "event": event,
            "run_id": run_id,
            "at": datetime.now(timezone.utc).isoformat(),
            **payload,
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write run log: {e}", path=str(path)) from e

    async def on_run_start(self, run_id: str, goal: Goal) -> None:
        self._append(run_id, "run_start", {"goal": goal.to_dict()})

    async def on_step(self, run_id: str, step: StepLog) -> None:
        self._append(run_id, "step", {"step": step.to_dict()})

    async def on_run_end(self, run_id: str, report: RunReport) -> None:
        self._append(
            run_id,
            "run_end",
            {"status": report.status.value, "steps": report.step_count, "error": report.error},
        )
        path = self.run_dir(run_id) / "report.json"
        try:
            path.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to write run report: {e}", path=str(path)) from e
        self.logger.info(f"Run log written to {path.parent}")
