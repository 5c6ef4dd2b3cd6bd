# User value: This file turns recorded or corrected ground truth into the exact MICR fields a check should read as.
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from schemas.ground_truth import X9Record
from services.errors import GroundTruthError


class MICRSymbol(str, Enum):
    """E-13B special symbols, in the ASCII alphabet used for ground truth."""

    TRANSIT = "T"  # frames the routing number
    ON_US = "U"  # ends the account number
    AMOUNT = "A"
    DASH = "D"


# X9 on-us fields use "/" where the printed line has the on-us symbol.
X9_ON_US_DELIMITER = "/"


@dataclass(frozen=True)
class FieldTriple:
    routing_number: str
    account_number: str
    check_number: Optional[str] = None


def parse_x9_record(check_id: int, raw: Any) -> X9Record:
    if isinstance(raw, X9Record):
        return raw
    if raw is None:
        raise GroundTruthError(check_id, "no ground truth recorded")
    try:
        return X9Record.model_validate(raw)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise GroundTruthError(check_id, f"malformed ground truth fields={fields}") from exc


# User value: derives what the MICR line should say from the X9 record when nobody has corrected it.
def triple_from_x9(check_id: int, raw: Any) -> FieldTriple:
    record = parse_x9_record(check_id, raw)
    routing = record.payorBankRoutingNumber + record.payorBankCheckDigit
    account = record.onUs.replace(X9_ON_US_DELIMITER, MICRSymbol.ON_US.value, 1)
    return FieldTriple(
        routing_number=routing,
        account_number=account,
        check_number=record.auxiliaryOnUs or None,
    )


def _leading_aux_on_us(prefix: str) -> Optional[str]:
    # "U1234U " ahead of the transit field is the auxiliary on-us (check number).
    value = prefix.strip()
    on_us = MICRSymbol.ON_US.value
    if len(value) >= 2 and value[0] == on_us and value[-1] == on_us:
        return value[1:-1].strip() or None
    return None


# User value: reads an operator's corrected MICR line so a known-bad X9 record does not count against the engines.
def decode_override(check_id: int, micr_line: str) -> FieldTriple:
    transit = MICRSymbol.TRANSIT.value
    on_us = MICRSymbol.ON_US.value

    first_t = micr_line.find(transit)
    second_t = micr_line.find(transit, first_t + 1) if first_t >= 0 else -1
    if second_t < 0:
        raise GroundTruthError(check_id, f"override {micr_line!r} needs two transit symbols")
    on_us_at = micr_line.find(on_us, second_t + 1)
    if on_us_at < 0:
        raise GroundTruthError(check_id, f"override {micr_line!r} has no on-us symbol after the routing number")

    routing = micr_line[first_t + 1:second_t].strip()
    if not routing:
        raise GroundTruthError(check_id, f"override {micr_line!r} has an empty routing number")
    account = micr_line[second_t + 1:on_us_at].strip()
    check_number = micr_line[on_us_at + 1:].strip() or _leading_aux_on_us(micr_line[:first_t])
    return FieldTriple(routing_number=routing, account_number=account, check_number=check_number)


def ground_truth_line(check_id: int, raw: Any) -> str:
    """MICR line written next to preprocessed images for engine training."""
    record = parse_x9_record(check_id, raw)
    route = record.payorBankRoutingNumber + record.payorBankCheckDigit
    on_us = record.onUs.replace(X9_ON_US_DELIMITER, MICRSymbol.ON_US.value, 1)
    aux = record.auxiliaryOnUs
    prefix = f"U{aux}U " if aux else ""
    return f"{prefix}T{route}T{on_us}"


def resolve_expected(check_id: int, raw: Optional[Mapping[str, Any]], override: Optional[str]) -> FieldTriple:
    if override is not None:
        return decode_override(check_id, override)
    return triple_from_x9(check_id, raw)
