"""
errors.py — AppError base class and error code registry.

Every error returned by the SettleUp API uses a code defined here.
Services and routes never raise bare strings or generic exceptions.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Messages are human-readable prose and may be improved at any time.
  - Validation (400/422) and state conflicts (409) use distinct codes so a
    caller can tell "bad input" from "not allowed right now".
  - 401 (unauthenticated) and 403 (unauthorized) are never swapped.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    @property
    def is_internal(self) -> bool:
        """True for invariant failures that must never reach a user verbatim."""
        return self.http_status >= 500

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_PAYMENT_METHOD     = "INVALID_PAYMENT_METHOD"
    INVALID_PAYMENT_STATUS     = "INVALID_PAYMENT_STATUS"

    # ── Business Rule Violations (422) ────────────────────────────────────
    PAYER_NOT_MEMBER           = "PAYER_NOT_MEMBER"
    RECEIVER_NOT_MEMBER        = "RECEIVER_NOT_MEMBER"
    SELF_PAYMENT               = "SELF_PAYMENT"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    PAYMENT_NOT_FOUND          = "PAYMENT_NOT_FOUND"

    # ── Conflict / State Errors (409) ──────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    ALREADY_MEMBER             = "ALREADY_MEMBER"
    PAYMENT_ALREADY_VERIFIED   = "PAYMENT_ALREADY_VERIFIED"
    PAYMENT_NOT_RECEIVER       = "PAYMENT_NOT_RECEIVER"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (unauthorized)
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── Ledger Invariant Failures (500) ────────────────────────────────────
    # Raised when stored data or derived balances break conservation of
    # money. These indicate corruption or a bug upstream, not bad input.
    LEDGER_IMBALANCED          = "LEDGER_IMBALANCED"
    LEDGER_DATA_INVALID        = "LEDGER_DATA_INVALID"

    # ── Protocol Errors (raised by Flask/Werkzeug, not by our code) ────────
    MALFORMED_JSON             = "MALFORMED_JSON"         # 400
    ROUTE_NOT_FOUND            = "ROUTE_NOT_FOUND"        # 404
    METHOD_NOT_ALLOWED         = "METHOD_NOT_ALLOWED"     # 405
    HTTP_ERROR                 = "HTTP_ERROR"             # any other 4xx

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# Default messages for codes that schemas raise as bare ValidationError text.
SCHEMA_CODE_MESSAGES: dict[str, str] = {
    ErrorCode.INVALID_AMOUNT_PRECISION: "Amount must have at most 2 decimal places.",
    ErrorCode.INVALID_PAYMENT_METHOD: "method must be 'cash' or 'upi'.",
    ErrorCode.INVALID_PAYMENT_STATUS: "status must be 'pending' or 'verified'.",
}
