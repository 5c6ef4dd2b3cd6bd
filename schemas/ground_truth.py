# User value: This file pins down the X9 fields an accuracy run trusts as the expected MICR values.
from typing import Optional

from pydantic import BaseModel, Field


class X9Record(BaseModel):
    # Field names follow the X9 check detail record, as stored in check-<id>.json.
    payorBankRoutingNumber: str = Field(..., min_length=1)
    payorBankCheckDigit: str = Field(..., min_length=1)
    onUs: str = Field(..., min_length=1)
    auxiliaryOnUs: Optional[str] = None
