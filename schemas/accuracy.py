# User value: This file gives the end-of-run accuracy summary a stable shape for logs and callers.
from typing import List, Optional

from pydantic import BaseModel, Field


class ClassificationReport(BaseModel):
    # None unless the run was started with show_matches
    matches: Optional[List[int]] = None
    mismatches: List[int] = Field(default_factory=list)
    to_evaluate: List[int] = Field(default_factory=list)
    to_reevaluate: List[int] = Field(default_factory=list)
    wrong_in_ground_truth: List[int] = Field(default_factory=list)

    match_count: int = Field(default=0, ge=0)
    wrong_ground_truth_count: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)

    match_percentage: str
    wrong_ground_truth_percentage: str
