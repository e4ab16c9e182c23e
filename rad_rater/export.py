"""
Export surface.

Turns a session into an ExportDocument: a snapshot of who rated, with which
configuration, the case ids shown per dataset, every answer in the order it
was first saved, and the blinded model order of each model-evaluation case.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from rad_rater.blinding import build_blinded_order
from rad_rater.config import RaterSettings
from rad_rater.response_models.export import (
    ExportCaseRef,
    ExportDocument,
    ExportPhase,
    ExportScope,
    ModelMapEntry,
)
from rad_rater.response_models.session import RaterSession
from rad_rater.response_models.status import PhaseKind


def build_export(
    session: RaterSession,
    settings: RaterSettings,
    exported_at: Optional[str] = None,
) -> ExportDocument:
    """
    Build the export document for a session. Does not modify the session.

    Args:
        session: Session to export
        settings: Settings providing the model columns
        exported_at: Timestamp to record (defaults to now, UTC)

    Returns:
        ExportDocument
    """
    model_ids = settings.model_ids
    phases = {}
    for phase in session.phases:
        datasets = {}
        for scope in phase.scopes:
            orders = {}
            if phase.kind == PhaseKind.MODEL_EVAL:
                orders = {
                    c.id: build_blinded_order(session.user_id, scope.key, c.id, model_ids)
                    for c in scope.cases
                }
            datasets[scope.key] = ExportScope(
                cases=[ExportCaseRef(id=c.id) for c in scope.cases],
                answers=dict(scope.answers),
                model_orders=orders,
            )
        phases[phase.key] = ExportPhase(kind=phase.kind, datasets=datasets)

    return ExportDocument(
        exported_at=exported_at or datetime.now(timezone.utc).isoformat(),
        version=session.version,
        user=session.user.model_copy(),
        config=session.config.model_copy(),
        status=session.status,
        audit=session.audit.model_copy(deep=True),
        model_map={m.key: ModelMapEntry(column=m.column, display=m.display) for m in settings.models},
        phases=phases,
    )


def export_json(document: ExportDocument) -> str:
    """Serialize an export document as indented JSON text."""
    return json.dumps(document.model_dump(mode="json"), indent=2, ensure_ascii=False)


def export_filename(user_id: str) -> str:
    return f"rater_results_{quote(user_id, safe='')}.json"


def write_export(document: ExportDocument, output_dir: Path) -> Path:
    """
    Write an export document to `output_dir`.

    Returns:
        Path of the written file
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / export_filename(document.user.id)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(export_json(document))
    return path
