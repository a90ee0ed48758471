# src/filepledge/api/schemas.py
from __future__ import annotations

"""HTTP request schemas.

Per-tx payload shapes are validated by runtime.tx_schema during admission;
these models only check the envelope.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class TxSubmitRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tx_type: StrictStr = Field(..., min_length=1, description="Canon tx type, e.g. REGISTER_FILE")
    signer: StrictStr = Field(..., min_length=1, description="Invoking principal")
    nonce: StrictInt = Field(..., ge=1, description="Signer's next nonce")
    payload: Dict[str, Any] = Field(default_factory=dict)
    sig: StrictStr = Field(default="", description="Hex or base64 Ed25519 signature")
