"""Registration, login, refresh and logout flows.

Ordering and failure policy for the auth endpoints live here; the components
below (ledger, store, tokens, abuse guard) stay unaware of each other.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache

from pathfinder.auth.passwords import hash_password, verify_password
from pathfinder.core.errors import (
    DuplicateEmail,
    EmailNotVerified,
    InvalidAccessToken,
    InvalidCredentials,
    MailDeliveryError,
    VerificationAttemptsExhausted,
    VerificationCodeInvalid,
    VerificationExpired,
    VerificationStale,
)
from pathfinder.models.user import User
from pathfinder.schemas import LoginRequest, RegistrationRequest
from pathfinder.services.abuse_guard import AbuseGuard
from pathfinder.services.credential_store import CredentialStore, NewUserProfile, sanitize
from pathfinder.services.mailer import Mailer
from pathfinder.services.token_service import TokenPair, TokenService
from pathfinder.services.verification_ledger import CheckOutcome, ConsumeOutcome, VerificationLedger

logger = logging.getLogger(__name__)

_CHECK_ERRORS = {
    CheckOutcome.INVALID: VerificationCodeInvalid,
    CheckOutcome.EXPIRED: VerificationExpired,
    CheckOutcome.ATTEMPTS_EXHAUSTED: VerificationAttemptsExhausted,
}


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    # Unknown emails still pay for one bcrypt check.
    return hash_password('pathfinder-dummy-password')


@dataclass(frozen=True)
class LoginResult:
    user: dict
    tokens: TokenPair


class AuthOrchestrator:
    def __init__(
        self,
        store: CredentialStore,
        ledger: VerificationLedger,
        tokens: TokenService,
        guard: AbuseGuard,
        mailer: Mailer,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.tokens = tokens
        self.guard = guard
        self.mailer = mailer

    def check_email_availability(self, email: str) -> None:
        if self.store.find_by_email(email) is not None:
            raise DuplicateEmail()

    def request_verification(self, email: str) -> None:
        self.check_email_availability(email)
        code = self.ledger.issue(email)
        try:
            self.mailer.send(email, code)
        except MailDeliveryError:
            # The code stays valid; the user can ask for it to be resent.
            logger.exception('Verification code for %s issued but not delivered', email)

    def verify_code(self, email: str, code: str) -> None:
        outcome = self.ledger.check(email, code)
        if outcome is not CheckOutcome.VERIFIED:
            raise _CHECK_ERRORS[outcome]()

    def register(self, request: RegistrationRequest) -> dict:
        if self.store.find_by_email(request.email) is not None:
            raise DuplicateEmail('User with this email already exists.')

        outcome = self.ledger.consume_if_fresh(request.email)
        if outcome is ConsumeOutcome.STALE:
            raise VerificationStale()
        if outcome is not ConsumeOutcome.VERIFIED:
            raise EmailNotVerified()

        profile = NewUserProfile(
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
            student_id=request.student_id,
        )
        user = self.store.create_user(profile, hash_password(request.password))
        return sanitize(user)

    def login(self, request: LoginRequest) -> LoginResult:
        self.guard.ensure_not_locked(request.email)

        user = self.store.find_by_email(request.email)
        hashed_password = user.hashed_password if user is not None else _dummy_password_hash()
        password_ok = verify_password(request.password, hashed_password)
        # Same error for unknown email and wrong password.
        if user is None or not password_ok:
            self.guard.lockout.record_failure(request.email)
            raise InvalidCredentials()

        self.guard.lockout.record_success(request.email)
        pair = self.tokens.issue(user.id)
        self.store.record_login(user.id, pair.refresh_token)
        logger.info('User %s logged in', user.id)
        refreshed = self.store.find_by_id(user.id) or user
        return LoginResult(user=sanitize(refreshed), tokens=pair)

    def refresh(self, refresh_token: str) -> TokenPair:
        return self.tokens.rotate(refresh_token)

    def logout(self, user_id: str) -> None:
        self.tokens.revoke(user_id)
        logger.info('User %s logged out', user_id)

    def current_user(self, access_token: str) -> User:
        user_id = self.tokens.verify_access(access_token)
        user = self.store.find_by_id(user_id)
        if user is None:
            raise InvalidAccessToken('User not found.')
        return user
