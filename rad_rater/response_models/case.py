from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Optional


class Case(BaseModel):
    """
    A sampled clinical case, immutable once it has been placed in a session.

    `models` maps model id -> free-text model output (empty for
    data-quality cases).
    """
    model_config = ConfigDict(frozen=True)

    id: str
    findings: str = ""
    indication: str = ""
    ground_truth: str = ""
    hardness: Optional[str] = None
    cot: Optional[str] = None
    models: Dict[str, str] = Field(default_factory=dict)

    def output_for(self, model_id: str) -> str:
        """Model output text, stripped; empty string when missing."""
        return (self.models.get(model_id) or "").strip()
