"""
Configuration loading.

Composes conf/config.yaml with Hydra (so command-line overrides use the usual
``key=value`` syntax), loads environment variables from .env first, and
validates the result into pydantic settings models.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from dotenv import load_dotenv
from hydra import compose, initialize_config_dir
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field, model_validator

from rad_rater.response_models.status import PhaseKind

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "conf"
CONFIG_NAME = "config"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class AppSpec(BaseModel):
    title: str = "Radiology Impression Rater"
    server_name: str = "127.0.0.1"
    server_port: int = 7860


class SamplingSpec(BaseModel):
    allowed_sample_sizes: List[int] = Field(default_factory=lambda: [10, 15, 20])
    default_sample_size: int = 15

    @model_validator(mode='after')
    def validate_default(self) -> 'SamplingSpec':
        if self.default_sample_size not in self.allowed_sample_sizes:
            raise ValueError(
                f"default_sample_size {self.default_sample_size} is not one of "
                f"{self.allowed_sample_sizes}"
            )
        return self


class DatasetSpec(BaseModel):
    key: str
    label: str
    file: str


class PhaseSpec(BaseModel):
    key: str
    label: str
    kind: PhaseKind
    datasets: List[DatasetSpec] = Field(default_factory=list)


class ColumnSpec(BaseModel):
    """CSV header names of the normalized case fields."""
    id: str = "id"
    findings: str = "findings"
    indication: str = "indication"
    ground_truth: str = "ground_truth"
    hardness: str = "hardness"
    cot: str = "cot"


class ModelColumn(BaseModel):
    key: str
    column: str
    display: str


class ScoringSpec(BaseModel):
    score_min: int = 1
    score_max: int = 5
    hardness_levels: List[str] = Field(default_factory=lambda: ["easy", "medium", "hard"])
    quality_levels: List[str] = Field(
        default_factory=lambda: ["poor", "acceptable", "good", "excellent"]
    )

    @property
    def score_values(self) -> List[int]:
        return list(range(self.score_min, self.score_max + 1))


class RemoteSpec(BaseModel):
    backend: str = "none"
    endpoint: str = ""
    token: str = ""
    timeout_seconds: float = 10
    credentials_path: str = "credentials/service_account.json"
    spreadsheet_id: str = ""
    sheet_name: str = "sessions"

    @model_validator(mode='after')
    def validate_backend(self) -> 'RemoteSpec':
        if self.backend not in ("none", "http", "sheets"):
            raise ValueError(f"Unknown remote backend: {self.backend!r}")
        return self


class StorageSpec(BaseModel):
    local_dir: str = "data/sessions"
    autosave_interval_seconds: float = 30
    remote: RemoteSpec = Field(default_factory=RemoteSpec)


class ExportSpec(BaseModel):
    output_dir: str = "data/exports"


class LoggingSpec(BaseModel):
    level: str = "INFO"


class RaterSettings(BaseModel):
    """Validated application settings."""
    app: AppSpec = Field(default_factory=AppSpec)
    sampling: SamplingSpec = Field(default_factory=SamplingSpec)
    phases: List[PhaseSpec]
    columns: ColumnSpec = Field(default_factory=ColumnSpec)
    models: List[ModelColumn]
    scoring: ScoringSpec = Field(default_factory=ScoringSpec)
    storage: StorageSpec = Field(default_factory=StorageSpec)
    export: ExportSpec = Field(default_factory=ExportSpec)
    logging: LoggingSpec = Field(default_factory=LoggingSpec)
    project_root: Path = PROJECT_ROOT

    @model_validator(mode='after')
    def validate_layout(self) -> 'RaterSettings':
        """Enforces the two-phase layout and unique keys.

        Dataset keys are part of every seed key, so they must be unique across
        all phases; otherwise two datasets would receive the same sample.
        """
        kinds = [p.kind for p in self.phases]
        if kinds != [PhaseKind.DATA_QUALITY, PhaseKind.MODEL_EVAL]:
            raise ValueError(
                "Expected exactly two phases: data_quality followed by model_eval, "
                f"got {[str(k) for k in kinds]}"
            )

        phase_keys = [p.key for p in self.phases]
        if len(set(phase_keys)) != len(phase_keys):
            raise ValueError(f"Duplicate phase keys: {phase_keys}")

        dataset_keys = [d.key for p in self.phases for d in p.datasets]
        if len(set(dataset_keys)) != len(dataset_keys):
            raise ValueError(f"Dataset keys must be unique across phases: {dataset_keys}")

        model_keys = [m.key for m in self.models]
        if not model_keys:
            raise ValueError("At least one model column must be configured")
        if len(set(model_keys)) != len(model_keys):
            raise ValueError(f"Duplicate model keys: {model_keys}")
        return self

    @property
    def model_ids(self) -> List[str]:
        return [m.key for m in self.models]

    def resolve_path(self, path: str) -> Path:
        """Resolve a configured path against the project root."""
        p = Path(path)
        return p if p.is_absolute() else self.project_root / p

    def phase_spec(self, key: str) -> Optional[PhaseSpec]:
        for p in self.phases:
            if p.key == key:
                return p
        return None

    def dataset_label(self, key: str) -> str:
        for p in self.phases:
            for d in p.datasets:
                if d.key == key:
                    return d.label
        return key


def load_config(
    overrides: Optional[Iterable[str]] = None,
    config_dir: Optional[Path] = None,
    config_name: str = CONFIG_NAME,
) -> DictConfig:
    """
    Compose the Hydra configuration.

    Args:
        overrides: Hydra override strings, e.g. ["storage.remote.backend=http"]
        config_dir: Directory holding the YAML files (defaults to conf/)
        config_name: Primary config file name without extension

    Returns:
        Composed DictConfig
    """
    load_dotenv()
    config_dir = Path(config_dir or CONFIG_DIR).resolve()
    with initialize_config_dir(version_base=None, config_dir=str(config_dir)):
        return compose(config_name=config_name, overrides=list(overrides or []))


def build_settings(cfg, project_root: Optional[Path] = None) -> RaterSettings:
    """
    Validate a composed config (DictConfig or plain dict) into RaterSettings.

    Args:
        cfg: Composed configuration
        project_root: Base for relative paths (defaults to the repository root)

    Returns:
        RaterSettings
    """
    if isinstance(cfg, DictConfig):
        data = OmegaConf.to_container(cfg, resolve=True)
    else:
        data = dict(cfg)
    if project_root is not None:
        data["project_root"] = project_root
    return RaterSettings(**data)


def load_settings(overrides: Optional[Iterable[str]] = None) -> RaterSettings:
    """Shortcut for build_settings(load_config(overrides))."""
    return build_settings(load_config(overrides))


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for CLI and GUI entry points."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # gspread/urllib3 are chatty at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
