"""Error taxonomy shared by the services and the HTTP layer.

Each error carries the HTTP status it maps to and a stable machine-readable
``code``; the exception handlers in ``pathfinder.main`` render both.
"""


class PathfinderError(Exception):
    status_code = 500
    code = 'internal_error'
    default_message = 'Internal server error'

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PathfinderError):
    status_code = 400
    code = 'validation_error'
    default_message = 'Invalid request.'


class DuplicateEmail(PathfinderError):
    status_code = 400
    code = 'duplicate_email'
    default_message = 'Email already registered.'


class EmailNotVerified(PathfinderError):
    status_code = 400
    code = 'email_not_verified'
    default_message = 'Email not verified. Please verify your email first.'


class VerificationStale(EmailNotVerified):
    code = 'email_verification_stale'
    default_message = 'Email verification expired. Please verify your email again.'


class VerificationCodeInvalid(PathfinderError):
    status_code = 400
    code = 'verification_code_invalid'
    default_message = 'Invalid verification code.'


class VerificationExpired(PathfinderError):
    status_code = 400
    code = 'verification_expired'
    default_message = 'Verification code has expired. Please request a new one.'


class VerificationAttemptsExhausted(PathfinderError):
    status_code = 400
    code = 'verification_attempts_exhausted'
    default_message = 'Too many failed attempts. Please request a new verification code.'


class InvalidCredentials(PathfinderError):
    status_code = 401
    code = 'invalid_credentials'
    default_message = 'Invalid email or password.'


class MissingAccessToken(PathfinderError):
    status_code = 401
    code = 'access_token_required'
    default_message = 'Access token required.'


class InvalidAccessToken(PathfinderError):
    status_code = 403
    code = 'invalid_access_token'
    default_message = 'Invalid or expired access token.'


class InvalidRefreshToken(PathfinderError):
    status_code = 403
    code = 'invalid_refresh_token'
    default_message = 'Invalid refresh token.'


class AccountLocked(PathfinderError):
    status_code = 423
    code = 'account_locked'
    default_message = 'Account temporarily locked due to too many failed attempts. Please try again later.'


class RateLimited(PathfinderError):
    status_code = 429
    code = 'rate_limited'
    default_message = 'Too many requests, please try again later.'

    def __init__(self, message: str | None = None, retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class InvalidUnlockCode(PathfinderError):
    status_code = 400
    code = 'invalid_unlock_code'
    default_message = 'Incorrect unlock code. Please check with the EIC and try again.'


class PhaseLocked(PathfinderError):
    status_code = 403
    code = 'phase_locked'
    default_message = 'This phase is not unlocked yet.'


class PhaseNotCompleted(PathfinderError):
    status_code = 409
    code = 'phase_not_completed'
    default_message = 'Complete this phase before submitting its unlock code.'


class PhaseRequirementsNotMet(PathfinderError):
    status_code = 400
    code = 'phase_requirements_not_met'
    default_message = 'Not all required tasks for this phase are complete.'


class ProgressConflict(PathfinderError):
    status_code = 409
    code = 'progress_conflict'
    default_message = 'Progress was changed by another request. Please retry.'


class UserNotFound(PathfinderError):
    status_code = 404
    code = 'user_not_found'
    default_message = 'User not found.'


class MailDeliveryError(PathfinderError):
    default_message = 'Failed to deliver email.'


class InternalError(PathfinderError):
    pass
