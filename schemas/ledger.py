# User value: This file describes what reviewers already know about failing checks so runs only surface new work.
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EvaluationLedger(BaseModel):
    model_config = ConfigDict(frozen=True)

    # reason -> check ids already triaged for that reason
    mismatchesByReason: Dict[str, List[int]] = Field(default_factory=dict)
    # check id -> corrected MICR line, e.g. "T123456789T123456789012U124"
    correctX9: Dict[str, str] = Field(default_factory=dict)

    def evaluated_ids(self) -> FrozenSet[int]:
        ids = set()
        for reason_ids in self.mismatchesByReason.values():
            ids.update(reason_ids)
        return frozenset(ids)

    def has_override(self, check_id: int) -> bool:
        return str(check_id) in self.correctX9

    def override_for(self, check_id: int) -> Optional[str]:
        return self.correctX9.get(str(check_id))
