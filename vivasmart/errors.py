"""
VivaSmart Exceptions

Domain errors raised by the entitlement core and its collaborators.
Every error carries a short user-facing message, a stable code and the
HTTP status the Gateway answers with. Storage internals never reach the
message.
"""
from __future__ import annotations

from typing import Optional


class VivaSmartError(Exception):
    """
    Base exception for everything the core reports to a caller.

    Routes never build error payloads by hand: the app-level error handler
    serializes any VivaSmartError with ``to_dict()``.
    """

    status_code = 400
    code = "ERROR"
    default_message = "Request could not be completed."

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None, details: Optional[dict] = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.message,
            "code": self.code,
        }


# ---------------------------------------------------------
# NotFound
# ---------------------------------------------------------
class NotFound(VivaSmartError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found."


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"
    default_message = "User not found."


class CouponNotFound(NotFound):
    code = "COUPON_NOT_FOUND"
    default_message = "Invalid coupon code."


class PaymentNotFound(NotFound):
    code = "PAYMENT_NOT_FOUND"
    default_message = "Payment not found."


# ---------------------------------------------------------
# InvalidInput
# ---------------------------------------------------------
class InvalidInput(VivaSmartError):
    status_code = 400
    code = "INVALID_INPUT"
    default_message = "Invalid request."


class UnknownAction(InvalidInput):
    code = "UNKNOWN_ACTION"
    default_message = "Unknown action."


class CouponInactive(InvalidInput):
    code = "COUPON_INACTIVE"
    default_message = "This coupon is no longer active."


class CouponExhausted(InvalidInput):
    code = "COUPON_EXHAUSTED"
    default_message = "Coupon has been fully redeemed."


class CouponExpired(InvalidInput):
    code = "COUPON_EXPIRED"
    default_message = "This coupon has expired."


# ---------------------------------------------------------
# Conflict
# ---------------------------------------------------------
class Conflict(VivaSmartError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Conflicting request."


class DuplicateUpiRef(Conflict):
    code = "DUPLICATE_UPI_REF"
    default_message = "This UPI reference was already submitted."


class DuplicateCode(Conflict):
    code = "DUPLICATE_CODE"
    default_message = "Coupon code already exists."


class AlreadyRedeemed(Conflict):
    code = "ALREADY_REDEEMED"
    default_message = "You have already used this coupon."


class AlreadyVerified(Conflict):
    code = "ALREADY_VERIFIED"
    default_message = "Already verified."


class AlreadyRejected(Conflict):
    code = "ALREADY_REJECTED"
    default_message = "Already rejected."


# ---------------------------------------------------------
# QuotaExceeded
# ---------------------------------------------------------
class QuotaExceeded(VivaSmartError):
    status_code = 403
    code = "QUOTA_EXCEEDED"
    default_message = "Usage limit reached."


class TrialLimitReached(QuotaExceeded):
    code = "TRIAL_LIMIT"
    default_message = "Trial limit reached. Please subscribe to continue."


# ---------------------------------------------------------
# UpstreamFailure
# ---------------------------------------------------------
class UpstreamFailure(VivaSmartError):
    status_code = 502
    code = "UPSTREAM_FAILURE"
    default_message = "Upstream service failed. Please try again."


class AnalyzerError(UpstreamFailure):
    code = "ANALYZER_FAILED"
    default_message = "Could not analyze the project right now. No trial was used."


class StoreUnavailable(UpstreamFailure):
    status_code = 503
    code = "STORE_UNAVAILABLE"
    default_message = "Service temporarily unavailable. Please try again."


class ConcurrentUpdate(UpstreamFailure):
    status_code = 503
    code = "CONCURRENT_UPDATE"
    default_message = "Your account was being updated by another request. Please try again."
