import hmac
import json
import logging
from typing import Dict, Optional

from app.auth.entity.entity import AuthResult, RejectReason


class AuthService:
    """
    Static shared-secret authorization.

    The credential table is a JSON object mapping identity to secret. It is
    parsed once at construction; an absent or malformed table rejects every
    request with its own diagnostic and never degrades into default-allow.
    """

    def __init__(self, user_secrets: Optional[str], logger: logging.Logger):
        self.logger = logger
        self._table: Optional[Dict[str, str]] = None
        self._table_error: Optional[RejectReason] = None

        if not user_secrets or not user_secrets.strip():
            self._table_error = RejectReason.TABLE_UNAVAILABLE
            self.logger.error("USER_SECRETS is not configured; every connection will be rejected")
            return

        try:
            table = json.loads(user_secrets)
        except json.JSONDecodeError as e:
            self._table_error = RejectReason.TABLE_MALFORMED
            self.logger.error(f"USER_SECRETS is not valid JSON: {e}")
            return

        if not isinstance(table, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in table.items()
        ):
            self._table_error = RejectReason.TABLE_MALFORMED
            self.logger.error("USER_SECRETS must be a JSON object of name -> secret strings")
            return

        self._table = table
        self.logger.info(f"Loaded {len(table)} allowed users")

    @property
    def is_configured(self) -> bool:
        return self._table is not None

    def verify(self, identity: Optional[str], secret: Optional[str]) -> AuthResult:
        """Check identity and secret against the table (everything but occupancy)."""
        if not identity:
            return AuthResult.rejected(RejectReason.MISSING_IDENTITY, "The 'name' parameter is required")

        if self._table_error == RejectReason.TABLE_UNAVAILABLE:
            return AuthResult.rejected(
                RejectReason.TABLE_UNAVAILABLE,
                "Critical server error: the administrator has not configured USER_SECRETS",
                identity,
            )
        if self._table_error == RejectReason.TABLE_MALFORMED or self._table is None:
            return AuthResult.rejected(
                RejectReason.TABLE_MALFORMED,
                "Server configuration error: USER_SECRETS is malformed",
                identity,
            )

        if identity not in self._table:
            return AuthResult.rejected(
                RejectReason.UNKNOWN_IDENTITY, f"User '{identity}' is not on the allow list", identity
            )

        expected = self._table[identity]
        if secret is None or not hmac.compare_digest(secret.encode("utf-8"), expected.encode("utf-8")):
            return AuthResult.rejected(RejectReason.SECRET_MISMATCH, "Wrong password", identity)

        return AuthResult.ok(identity)
