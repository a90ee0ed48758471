from __future__ import annotations

"""Transaction payload schemas.

Shape validation for canon TxTypes (see filepledge/tx/tx_canon.yaml), invoked
by tx_admission before a tx reaches the apply layer.

These schemas check types and required keys only. Range rules (file id
length, size cap, duration bounds, positive amounts) are enforced by the
apply layer so that they surface with the engine's error codes no matter how
a tx arrives.
"""

from typing import Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

Json = Dict[str, Any]


class _StrictModel(BaseModel):
    """Strict model: reject unknown keys."""

    model_config = ConfigDict(extra="forbid")


class AccountRegisterPayload(_StrictModel):
    pubkey: StrictStr = Field(..., min_length=1)


class RegisterFilePayload(_StrictModel):
    file_id: StrictStr
    size_mb: StrictInt


class CreateCommitmentPayload(_StrictModel):
    file_id: StrictStr
    duration_blocks: StrictInt


class CommitmentRefPayload(_StrictModel):
    """Used by VERIFY_STORAGE_COMMITMENT and CLAIM_REWARD."""

    file_id: StrictStr
    commitment_id: StrictInt


class AmountPayload(_StrictModel):
    """Used by FUND_CONTRACT and WITHDRAW_REWARDS."""

    amount: StrictInt


PAYLOAD_SCHEMAS: Dict[str, Type[BaseModel]] = {
    "ACCOUNT_REGISTER": AccountRegisterPayload,
    "REGISTER_FILE": RegisterFilePayload,
    "CREATE_COMMITMENT": CreateCommitmentPayload,
    "VERIFY_STORAGE_COMMITMENT": CommitmentRefPayload,
    "CLAIM_REWARD": CommitmentRefPayload,
    "FUND_CONTRACT": AmountPayload,
    "WITHDRAW_REWARDS": AmountPayload,
}


def validate_payload(tx_type: str, payload: Any) -> Tuple[bool, Optional[Json]]:
    """Return (ok, error_details)."""
    t = str(tx_type or "").strip().upper()
    model = PAYLOAD_SCHEMAS.get(t)
    if model is None:
        return False, {"tx_type": t, "error": "no_schema"}
    if not isinstance(payload, dict):
        return False, {"tx_type": t, "error": "payload_must_be_object"}
    try:
        model.model_validate(payload)
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(x) for x in err.get("loc", ())), "type": str(err.get("type", ""))}
            for err in e.errors()
        ]
        return False, {"tx_type": t, "errors": errors}
    return True, None


__all__ = ["PAYLOAD_SCHEMAS", "validate_payload"]
