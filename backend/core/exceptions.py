"""
Domain errors raised by the wallet, referral and commission services.

Every error carries a stable `code` and the HTTP status it maps to. Services
raise them from inside `transaction.atomic()` blocks, so raising is enough to
roll back the whole operation; the API layer only has to report them.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class PlatformError(Exception):
    code = "platform_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Operation failed."

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self) -> dict:
        data = {"detail": self.message, "code": self.code}
        if self.context:
            data["context"] = {k: str(v) for k, v in self.context.items()}
        return data


class InvalidAmount(PlatformError):
    code = "invalid_amount"
    default_message = "Amount must be greater than 0."


class InvalidRequest(PlatformError):
    code = "invalid_request"
    default_message = "Invalid request."


class InsufficientFunds(PlatformError):
    code = "insufficient_funds"
    default_message = "Insufficient funds."


class UserNotFound(PlatformError):
    code = "user_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found."


class UserBlocked(PlatformError):
    code = "user_blocked"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Account is blocked."


class PlanNotFound(PlatformError):
    code = "plan_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Plan not found."


class PlanInactive(PlatformError):
    code = "plan_inactive"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Plan is not available for purchase."


class PlanLocked(PlatformError):
    code = "plan_locked"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Plan has purchases; price, duration and commission structure can no longer change."


class RequestNotFound(PlatformError):
    code = "request_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Request not found."


class RequestAlreadyProcessed(PlatformError):
    code = "request_already_processed"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Request has already been processed."


class CommissionNotHeld(RequestAlreadyProcessed):
    code = "commission_not_held"
    default_message = "Only held commissions can be released."


class CommissionNotFound(PlatformError):
    code = "commission_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Commission not found."


class InvalidReferralCode(PlatformError):
    code = "invalid_referral_code"
    default_message = "Invalid referral code."


class SelfReferral(PlatformError):
    code = "self_referral"
    default_message = "A user cannot sponsor themselves."


class CyclicSponsor(PlatformError):
    code = "cyclic_sponsor"
    default_message = "Sponsor assignment would create a cycle in the referral chain."


def platform_exception_handler(exc, context):
    """
    DRF exception handler: domain errors become {"detail", "code"} responses,
    everything else falls through to DRF's default handling.
    """
    if isinstance(exc, PlatformError):
        view = context.get("view")
        logger.warning(
            "%s rejected: %s (%s)",
            view.__class__.__name__ if view is not None else "request",
            exc.message,
            exc.code,
        )
        return Response(exc.as_dict(), status=exc.status_code)
    return exception_handler(exc, context)
