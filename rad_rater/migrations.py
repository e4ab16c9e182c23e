"""
Session schema migrations.

Stored sessions are upgraded once, at load time, to the current schema.
Business logic only ever sees the current RaterSession shape.

Versions:
    3: single-phase rater. ``datasets`` maps dataset key -> {cases, cursor,
       answers}; answers carry a single ``overall_score`` string.
    4: two-phase rater (data quality, then model evaluation) with explicit
       status, position and transition audit.
"""

import logging
from typing import Any, Callable, Dict, Optional

from rad_rater.response_models.session import SCHEMA_VERSION, RaterSession
from rad_rater.response_models.status import PhaseKind, SessionStatus

logger = logging.getLogger(__name__)

LEGACY_VERSION = 3


def _parse_score(value: Any) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    return int(text) if text.isdigit() else None


def _upgrade_v3_answer(case_id: str, scope_key: str, raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "kind": PhaseKind.MODEL_EVAL.value,
        "case_id": str(raw.get("case_id") or case_id),
        "scope": raw.get("dataset") or scope_key,
        "scores": {},
        "overall_score": _parse_score(raw.get("overall_score")),
        "comment": raw.get("comment") or "",
        "show_gt": bool(raw.get("show_gt", False)),
        "open_model": raw.get("open_model"),
        "saved_at": raw.get("saved_at"),
    }


def _upgrade_v3(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Move the v3 datasets into the model-evaluation phase."""
    scopes = []
    for key, dataset in (raw.get("datasets") or {}).items():
        dataset = dataset or {}
        cases = dataset.get("cases") or []
        case_ids = {str(c.get("id")) for c in cases}
        answers = {}
        for case_id, answer in (dataset.get("answers") or {}).items():
            if str(case_id) not in case_ids:
                logger.warning("Dropping v3 answer for unknown case %r in %s", case_id, key)
                continue
            answers[str(case_id)] = _upgrade_v3_answer(str(case_id), key, answer or {})
        scopes.append({
            "key": key,
            "cases": cases,
            "cursor": int(dataset.get("cursor") or 0),
            "answers": answers,
        })

    user = raw.get("user") or {}
    config = raw.get("config") or {}
    audit = raw.get("audit") or {}
    return {
        "version": 4,
        "user": {
            "id": user.get("id", ""),
            "meta": user.get("meta") or "",
            "created_at": user.get("created_at") or "",
        },
        "config": {"sample_size_per_dataset": int(config.get("sample_size_per_dataset") or 15)},
        # The data-quality phase did not exist yet; start_session samples it
        "status": SessionStatus.NEW.value,
        "position": None,
        "phases": [
            {"key": PhaseKind.DATA_QUALITY.value, "kind": PhaseKind.DATA_QUALITY.value, "scopes": []},
            {"key": PhaseKind.MODEL_EVAL.value, "kind": PhaseKind.MODEL_EVAL.value, "scopes": scopes},
        ],
        "audit": {"last_saved_at": audit.get("last_saved_at"), "save_count": 0, "transitions": []},
    }


MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    3: _upgrade_v3,
}


def detect_version(raw: Dict[str, Any]) -> int:
    version = raw.get("version")
    if version is None:
        # Pre-versioned payloads used the v3 layout
        return LEGACY_VERSION if "datasets" in raw else SCHEMA_VERSION
    return int(version)


def upgrade(raw: Dict[str, Any]) -> RaterSession:
    """
    Upgrade a raw stored session to the current schema.

    Args:
        raw: Session payload as read from a store

    Returns:
        RaterSession in the current schema

    Raises:
        ValueError: If the payload's version is unknown or newer than supported
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Stored session must be a JSON object, got {type(raw).__name__}")

    version = detect_version(raw)
    if version > SCHEMA_VERSION:
        raise ValueError(
            f"Stored session has schema version {version}; this build supports up to {SCHEMA_VERSION}"
        )

    data = raw
    while version < SCHEMA_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            raise ValueError(f"No migration from session schema version {version}")
        data = step(data)
        logger.info("Upgraded session from schema v%d to v%d", version, data["version"])
        version = data["version"]

    return RaterSession.model_validate(data)
