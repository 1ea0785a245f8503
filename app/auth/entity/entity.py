from enum import Enum
from typing import Optional

from pydantic import BaseModel


class RejectReason(str, Enum):
    """Why a connection attempt was refused, in the order the checks run."""
    MISSING_IDENTITY = "missing_identity"
    TABLE_UNAVAILABLE = "table_unavailable"
    TABLE_MALFORMED = "table_malformed"
    UNKNOWN_IDENTITY = "unknown_identity"
    SECRET_MISMATCH = "secret_mismatch"
    ALREADY_CONNECTED = "already_connected"


class AuthResult(BaseModel):
    """Outcome of an authorization check."""
    authorized: bool
    identity: Optional[str] = None
    reason: Optional[RejectReason] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, identity: str) -> "AuthResult":
        return cls(authorized=True, identity=identity)

    @classmethod
    def rejected(cls, reason: RejectReason, message: str, identity: Optional[str] = None) -> "AuthResult":
        return cls(authorized=False, identity=identity, reason=reason, message=message)
