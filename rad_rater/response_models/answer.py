"""
Answer Models

Pydantic models for the ratings a rater submits for one case. Answers are
keyed by case id inside a dataset scope; saving again overwrites the previous
answer for that case.
"""

from pydantic import BaseModel, Field
from typing import Annotated, Dict, Literal, Optional, Union


class ModelScoreAnswer(BaseModel):
    """Per-model quality scores for one model-evaluation case."""
    kind: Literal["model_eval"] = "model_eval"
    case_id: str = ""
    scope: str = ""
    scores: Dict[str, int] = Field(
        default_factory=dict,
        description="Model id -> discrete score"
    )
    # Single overall score recorded by the v3 rater; kept for upgraded sessions
    overall_score: Optional[int] = None
    comment: str = ""
    show_gt: bool = False
    open_model: Optional[str] = Field(None, description="Model id whose output was expanded")
    saved_at: Optional[str] = None


class DataQualityAnswer(BaseModel):
    """Hardness and chain-of-thought quality labels for one case."""
    kind: Literal["data_quality"] = "data_quality"
    case_id: str = ""
    scope: str = ""
    hardness: Optional[str] = Field(None, description="Case hardness level")
    quality: Optional[str] = Field(None, description="Chain-of-thought quality level")
    comment: str = ""
    show_gt: bool = False
    saved_at: Optional[str] = None


Answer = Annotated[Union[ModelScoreAnswer, DataQualityAnswer], Field(discriminator="kind")]
