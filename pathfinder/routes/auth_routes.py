from fastapi import APIRouter, Depends, status

from pathfinder.auth.dependencies import get_auth_orchestrator, get_current_user, rate_limit
from pathfinder.models.user import User
from pathfinder.schemas import (
    EmailRequest,
    LoginRequest,
    RefreshRequest,
    RegistrationRequest,
    TokenPairResponse,
    UserResponse,
    VerifyCodeRequest,
)
from pathfinder.services.auth_orchestrator import AuthOrchestrator
from pathfinder.services.credential_store import sanitize
from pathfinder.services.token_service import TokenPair

router = APIRouter(tags=['auth'])


def render_user(user: dict) -> dict:
    return UserResponse.model_validate(user).model_dump(mode='json', by_alias=True)


def render_tokens(pair: TokenPair) -> dict:
    return TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    ).model_dump(by_alias=True)


@router.post('/send-verification', dependencies=[Depends(rate_limit('verification'))])
def send_verification(
    payload: EmailRequest,
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    orchestrator.request_verification(payload.email)
    return {'status': 'verification_sent', 'message': 'Verification code sent. Check your email.'}


@router.post('/verify-code')
def verify_code(
    payload: VerifyCodeRequest,
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    orchestrator.verify_code(payload.email, payload.code)
    return {'status': 'email_verified', 'message': 'Email verified successfully.'}


@router.post('/verify-email')
def verify_email(
    payload: EmailRequest,
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    orchestrator.check_email_availability(payload.email)
    return {'status': 'email_available', 'message': 'Email is valid and available.'}


@router.post(
    '/register',
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit('register'))],
)
def register(
    payload: RegistrationRequest,
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    user = orchestrator.register(payload)
    return {'status': 'user_created', 'message': 'User created successfully.', 'user': render_user(user)}


@router.post('/login', dependencies=[Depends(rate_limit('login'))])
def login(
    payload: LoginRequest,
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    result = orchestrator.login(payload)
    return {
        'status': 'login_successful',
        'message': 'Login successful.',
        'user': render_user(result.user),
        **render_tokens(result.tokens),
    }


@router.post('/refresh')
def refresh(
    payload: RefreshRequest,
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    pair = orchestrator.refresh(payload.refresh_token)
    return {'status': 'token_refreshed', **render_tokens(pair)}


@router.post('/logout')
def logout(
    current_user: User = Depends(get_current_user),
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    orchestrator.logout(current_user.id)
    return {'status': 'logged_out', 'message': 'Logged out.'}


@router.get('/me')
def me(current_user: User = Depends(get_current_user)):
    return {'status': 'ok', 'user': render_user(sanitize(current_user))}
