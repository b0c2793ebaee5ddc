"""Snapshot utilities: load fleet snapshots and capture them read-only for a run"""
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, Union

from induction_engine.models.trainset import Trainset

logger = logging.getLogger(__name__)

SnapshotEntry = Union[Trainset, Dict[str, Any]]


def load_snapshot(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Load a fleet snapshot from a JSON file.

    Accepts either a bare list of trainset documents or an object with a
    "trainsets" key (the shape written by the mock data generator).
    Documents are returned raw; validation happens when a run starts.
    """
    snapshot_path = Path(path)
    with snapshot_path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("trainsets", [])
    if not isinstance(data, list):
        raise ValueError(f"Snapshot {snapshot_path} must contain a list of trainsets")

    logger.info(f"Loaded snapshot with {len(data)} trainsets from {snapshot_path}")
    return data


def capture_snapshot(trainsets: Sequence[SnapshotEntry]) -> Tuple[SnapshotEntry, ...]:
    """
    Capture a read-only copy of the caller's snapshot for the duration of a run.

    Raw documents are deep-copied so the caller can keep mutating its own data;
    Trainset models are frozen and shared as-is. Input order is preserved.
    """
    captured = tuple(
        entry if isinstance(entry, Trainset) else copy.deepcopy(entry)
        for entry in trainsets
    )
    logger.debug(f"Captured snapshot of {len(captured)} entries")
    return captured


def dump_snapshot(trainsets: Sequence[Trainset], path: Union[str, Path]) -> Path:
    """Write validated trainsets to a JSON snapshot file"""
    snapshot_path = Path(path)
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"trainsets": [t.model_dump(mode="json") for t in trainsets]}
    snapshot_path.write_text(json.dumps(payload, indent=2))
    return snapshot_path
