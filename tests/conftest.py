"""
Shared fixtures: small CSV datasets in tmp_path, settings built from a dict,
an in-memory remote store and a deterministic clock.
"""

import csv
from pathlib import Path

import pytest

from rad_rater.config import build_settings
from rad_rater.persistence import SessionPersistence
from rad_rater.rating_store import RatingStore
from rad_rater.response_models.answer import DataQualityAnswer, ModelScoreAnswer
from rad_rater.response_models.status import PhaseKind
from rad_rater.storage import LocalSessionCache, MemorySessionStore

MODELS = [
    {"key": "alpha", "column": "alpha_impression", "display": "Alpha"},
    {"key": "beta", "column": "beta_impression", "display": "Beta"},
    {"key": "gamma", "column": "gamma_impression", "display": "Gamma"},
]

DATASET_ROWS = 8


def write_csv(path: Path, header, rows) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)
    return path


def write_datasets(root: Path) -> None:
    write_csv(
        root / "data" / "quality.csv",
        ["id", "findings", "indication", "ground_truth", "hardness", "cot"],
        [
            [f"q{i}", f"Findings {i}", f"Indication {i}", f"Impression {i}", "medium", f"Reasoning {i}"]
            for i in range(DATASET_ROWS)
        ],
    )
    for name in ("north", "south"):
        write_csv(
            root / "data" / f"{name}.csv",
            ["id", "findings", "indication", "ground_truth"] + [m["column"] for m in MODELS],
            [
                [f"{name}-{i}", f"Findings {i}", f"Indication {i}", f"Impression {i}"]
                + [f"{m['key']} says {i}" for m in MODELS]
                for i in range(DATASET_ROWS)
            ],
        )


def settings_dict(**sampling):
    return {
        "app": {"title": "Test Rater"},
        "sampling": {
            "allowed_sample_sizes": sampling.get("allowed", [3, 5]),
            "default_sample_size": sampling.get("default", 3),
        },
        "phases": [
            {
                "key": "data_quality",
                "label": "Data Quality",
                "kind": "data_quality",
                "datasets": [{"key": "quality", "label": "Quality Set", "file": "data/quality.csv"}],
            },
            {
                "key": "model_eval",
                "label": "Model Evaluation",
                "kind": "model_eval",
                "datasets": [
                    {"key": "north", "label": "North", "file": "data/north.csv"},
                    {"key": "south", "label": "South", "file": "data/south.csv"},
                ],
            },
        ],
        "models": MODELS,
        "storage": {"local_dir": "sessions", "autosave_interval_seconds": 30},
        "export": {"output_dir": "exports"},
    }


class FakeClock:
    """Returns increasing ISO timestamps, one second apart."""

    def __init__(self):
        self.ticks = 0

    def __call__(self) -> str:
        self.ticks += 1
        return f"2026-01-01T00:{self.ticks // 60:02d}:{self.ticks % 60:02d}+00:00"


@pytest.fixture
def project(tmp_path):
    write_datasets(tmp_path)
    return tmp_path


@pytest.fixture
def settings(project):
    return build_settings(settings_dict(), project_root=project)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def remote():
    return MemorySessionStore()


@pytest.fixture
def persistence(settings, remote):
    return SessionPersistence(LocalSessionCache(str(settings.resolve_path("sessions"))), remote)


@pytest.fixture
def store(settings, persistence, clock):
    return RatingStore(settings, persistence=persistence, now=clock)


@pytest.fixture
def complete_answer(settings):
    """Factory for a fully filled-in answer of the given phase kind."""
    def make(kind, score=4, comment=""):
        if kind == PhaseKind.DATA_QUALITY:
            return DataQualityAnswer(hardness="easy", quality="good", comment=comment)
        return ModelScoreAnswer(scores={m: score for m in settings.model_ids}, comment=comment)
    return make
