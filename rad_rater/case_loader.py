"""
Case Loader Module

Reads dataset CSV files, normalizes rows into Case records and samples each
rater's cases into their session. Sampling only happens for scopes that have
no cases yet, so repeated logins never change a rater's case set.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from rad_rater.config import ColumnSpec, DatasetSpec, ModelColumn, RaterSettings
from rad_rater.errors import LoadError
from rad_rater.response_models.case import Case
from rad_rater.response_models.session import RaterSession
from rad_rater.response_models.status import PhaseKind
from rad_rater.sampler import seeded_sample
from rad_rater.seeding import SeedContext

logger = logging.getLogger(__name__)

Row = Dict[str, str]
RowSource = Callable[[Path], List[Row]]


def _remediation(path: Path) -> List[str]:
    return [
        f"Does the file exist at {path}?",
        "Is the data/ directory next to conf/ (or is the configured path absolute)?",
        "Do the file names match exactly? They are case-sensitive.",
        "Is the file a comma-separated CSV with a header row?",
    ]


def read_csv_rows(path: Path) -> List[Row]:
    """
    Parse a CSV file into header-keyed rows with every value as a string.

    Blank lines are skipped and empty cells become empty strings.

    Args:
        path: Path to the CSV file

    Returns:
        List of row dictionaries

    Raises:
        LoadError: If the file is missing or cannot be parsed
    """
    path = Path(path)
    if not path.exists():
        raise LoadError(f"Dataset file not found: {path}", _remediation(path))

    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError as e:
        raise LoadError(f"Dataset file is empty: {path}", _remediation(path)) from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise LoadError(f"Could not parse {path.name}: {e}", _remediation(path)) from e

    return df.to_dict(orient="records")


def normalize_row(
    row: Row,
    columns: ColumnSpec,
    model_columns: Sequence[ModelColumn] = (),
) -> Case:
    """
    Convert a raw CSV row into a Case.

    Missing text columns become empty strings; hardness and cot stay None
    when the dataset has no such column.
    """
    def text(column: str) -> str:
        value = row.get(column)
        return "" if value is None else str(value)

    def optional(column: str) -> Optional[str]:
        value = row.get(column)
        return None if value is None else str(value)

    return Case(
        id=str(row.get(columns.id, "")).strip(),
        findings=text(columns.findings),
        indication=text(columns.indication),
        ground_truth=text(columns.ground_truth),
        hardness=optional(columns.hardness),
        cot=optional(columns.cot),
        models={m.key: text(m.column) for m in model_columns},
    )


class CaseLoader:
    """
    Loads dataset files and samples cases into rater sessions.

    Attributes:
        settings: Validated application settings
        row_source: Function returning raw rows for a dataset path
    """

    def __init__(self, settings: RaterSettings, row_source: RowSource = read_csv_rows):
        self.settings = settings
        self.row_source = row_source

    def load_dataset(self, dataset: DatasetSpec, kind: PhaseKind) -> List[Case]:
        """
        Load and normalize every row of a dataset.

        Raises:
            LoadError: If the source fails, is empty, lacks the id column, or has
                blank or duplicate ids
        """
        path = self.settings.resolve_path(dataset.file)
        try:
            rows = self.row_source(path)
        except LoadError:
            raise
        except Exception as e:
            raise LoadError(f"Dataset load failed for {dataset.label}: {e}", _remediation(path)) from e

        if not rows:
            raise LoadError(f"Dataset {dataset.label} has no rows: {path}", _remediation(path))

        id_column = self.settings.columns.id
        if id_column not in rows[0]:
            raise LoadError(
                f"Dataset {dataset.label} has no '{id_column}' column",
                _remediation(path),
            )

        model_columns = self.settings.models if kind == PhaseKind.MODEL_EVAL else ()
        cases = []
        problems = []
        seen = set()
        for i, row in enumerate(rows, start=1):
            case = normalize_row(row, self.settings.columns, model_columns)
            if not case.id:
                problems.append(f"Row {i} has an empty '{id_column}' value")
            elif case.id in seen:
                problems.append(f"Row {i} repeats case id {case.id!r}")
            seen.add(case.id)
            cases.append(case)

        # Every row keeps its index in the sampling space
        if problems:
            raise LoadError(
                f"Dataset {dataset.label} has {len(problems)} row(s) without a unique id: {path}",
                problems + ["Give every row a distinct, non-empty id and reload"],
            )

        logger.info("Loaded %d cases from %s", len(cases), path.name)
        return cases

    def sample_cases(self, user_id: str, dataset: DatasetSpec, kind: PhaseKind, n: int) -> List[Case]:
        """Sample a rater's cases for one dataset."""
        cases = self.load_dataset(dataset, kind)
        return seeded_sample(cases, n, SeedContext.sample(user_id, dataset.key))

    def populate_session(self, session: RaterSession) -> List[str]:
        """
        Sample cases into every scope of the session that has none yet.

        Scopes that already hold cases are never touched. All datasets are
        loaded before the session is modified, so a LoadError leaves the
        session exactly as it was.

        Args:
            session: Session reconciled with the configured phases

        Returns:
            Keys of the scopes that were populated

        Raises:
            LoadError: If any dataset needed for sampling fails to load
        """
        n = session.config.sample_size_per_dataset
        sampled = {}
        for phase_spec in self.settings.phases:
            phase = session.phase(phase_spec.key)
            if phase is None:
                continue
            for dataset in phase_spec.datasets:
                scope = phase.scope(dataset.key)
                if scope is None or scope.cases:
                    continue
                sampled[dataset.key] = self.sample_cases(session.user_id, dataset, phase_spec.kind, n)

        for phase in session.phases:
            for scope in phase.scopes:
                if scope.key in sampled:
                    scope.cases = sampled[scope.key]
                    scope.cursor = 0

        return list(sampled)
