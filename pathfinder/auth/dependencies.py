from functools import lru_cache

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pathfinder.core import config
from pathfinder.core.errors import MissingAccessToken
from pathfinder.database import SessionLocal
from pathfinder.models.user import User
from pathfinder.services.abuse_guard import AbuseGuard, build_counter_store
from pathfinder.services.auth_orchestrator import AuthOrchestrator
from pathfinder.services.credential_store import CredentialStore
from pathfinder.services.mailer import build_mailer
from pathfinder.services.phase_unlock import PhaseUnlockMachine
from pathfinder.services.token_service import TokenService
from pathfinder.services.verification_ledger import VerificationLedger

security = HTTPBearer(auto_error=False)


@lru_cache
def get_credential_store() -> CredentialStore:
    return CredentialStore(SessionLocal)


@lru_cache
def get_verification_ledger() -> VerificationLedger:
    return VerificationLedger(SessionLocal)


@lru_cache
def get_abuse_guard() -> AbuseGuard:
    return AbuseGuard(build_counter_store())


@lru_cache
def get_auth_orchestrator() -> AuthOrchestrator:
    store = get_credential_store()
    return AuthOrchestrator(
        store=store,
        ledger=get_verification_ledger(),
        tokens=TokenService(store),
        guard=get_abuse_guard(),
        mailer=build_mailer(),
    )


@lru_cache
def get_phase_machine() -> PhaseUnlockMachine:
    return PhaseUnlockMachine(get_credential_store(), SessionLocal)


def get_client_ip(request: Request) -> str:
    if config.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",", 1)[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


def rate_limit(bucket: str):
    def dependency(request: Request, guard: AbuseGuard = Depends(get_abuse_guard)) -> None:
        guard.check_rate(bucket, get_client_ip(request))

    return dependency


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
) -> User:
    if credentials is None:
        raise MissingAccessToken()
    return orchestrator.current_user(credentials.credentials)
