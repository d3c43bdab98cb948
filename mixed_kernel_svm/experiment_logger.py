from __future__ import annotations

import csv
import json
import subprocess
import time
import uuid
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class KernelRunRecord:
    timestamp_utc: str
    run_id: str
    git_commit: str | None
    dataset_train_path: str
    dataset_test_path: str | None
    cv_folds: int
    seed: int | None
    kernel_groups_json: str
    gamma: float
    C: float
    cv_scores_json: str
    test_accuracy: float | None
    runtime_seconds: float
    notes: str


def _git_commit(repo_root: Path) -> str | None:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], cwd=str(repo_root), stderr=subprocess.DEVNULL)
    except (OSError, subprocess.CalledProcessError):
        return None
    return out.decode("utf-8").strip() or None


def ensure_history_file(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        return

    with path.open("w", newline="", encoding="utf-8") as f:
        csv.writer(f).writerow([fld.name for fld in fields(KernelRunRecord)])


def append_record(history_csv: Path, record: KernelRunRecord) -> None:
    ensure_history_file(history_csv)
    with history_csv.open("a", newline="", encoding="utf-8") as f:
        row = asdict(record)
        csv.writer(f).writerow([row[fld.name] for fld in fields(KernelRunRecord)])


def read_history(history_csv: Path) -> list[dict[str, str]]:
    with Path(history_csv).open("r", newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


class ExperimentTimer:
    def __init__(self) -> None:
        self._t0 = time.perf_counter()

    def seconds(self) -> float:
        return time.perf_counter() - self._t0


def make_record(
    *,
    repo_root: Path,
    dataset_train_path: str,
    dataset_test_path: str | None,
    cv_folds: int,
    seed: int | None,
    kernel_groups: dict[str, Any],
    gamma: float,
    C: float,
    cv_scores: tuple,
    test_accuracy: float | None,
    runtime_seconds: float,
    notes: str = "",
) -> KernelRunRecord:
    return KernelRunRecord(
        timestamp_utc=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        run_id=str(uuid.uuid4()),
        git_commit=_git_commit(repo_root),
        dataset_train_path=dataset_train_path,
        dataset_test_path=dataset_test_path,
        cv_folds=cv_folds,
        seed=seed,
        kernel_groups_json=json.dumps(kernel_groups, sort_keys=True),
        gamma=gamma,
        C=C,
        cv_scores_json=json.dumps([[c, s] for c, s in cv_scores]),
        test_accuracy=test_accuracy,
        runtime_seconds=runtime_seconds,
        notes=notes,
    )
