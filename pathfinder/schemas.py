import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from pathfinder.core import config
from pathfinder.core.errors import ValidationError

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
VERIFICATION_CODE_PATTERN = re.compile(r'^[0-9]{6}$')
ASSESSMENT_LEVELS = ('beginner', 'intermediate', 'advanced')
PHASE_IDS = range(1, 6)


def normalize_email(value: str | None) -> str:
    return (value or '').strip().lower()


def validate_institution_email(value: str | None) -> str:
    normalized = normalize_email(value)
    if not normalized:
        raise ValueError('Email is required.')
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError('Invalid email format.')

    domain = normalized.rsplit('@', 1)[1]
    if domain not in config.ALLOWED_EMAIL_DOMAINS:
        allowed = ' or '.join(f'@{item}' for item in config.ALLOWED_EMAIL_DOMAINS)
        raise ValueError(f'Please use your university email address ({allowed}).')
    return normalized


def validate_phase_id(value: int) -> int:
    if value not in PHASE_IDS:
        raise ValueError('Phase must be between 1 and 5.')
    return value


class EmailRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return validate_institution_email(value)


class VerifyCodeRequest(EmailRequest):
    code: str

    @field_validator('code')
    @classmethod
    def validate_code(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Verification code is required.')
        if not VERIFICATION_CODE_PATTERN.match(normalized):
            raise ValueError('Verification code must be exactly 6 digits.')
        return normalized


class RegistrationRequest(EmailRequest):
    password: str
    first_name: str = Field(alias='firstName')
    last_name: str = Field(alias='lastName')
    student_id: str = Field(alias='studentId')
    verification_code: str = Field(alias='verificationCode')

    model_config = {'populate_by_name': True}

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < config.PASSWORD_MIN_LENGTH:
            raise ValueError(f'Password must be at least {config.PASSWORD_MIN_LENGTH} characters long.')
        if len(value.encode('utf-8')) > config.PASSWORD_MAX_BYTES:
            raise ValueError(f'Password must be at most {config.PASSWORD_MAX_BYTES} bytes long.')
        return value

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) < 2:
            raise ValueError('First and last names must be at least 2 characters long.')
        if len(normalized) > 100:
            raise ValueError('First and last names must be 100 characters or fewer.')
        return normalized

    @field_validator('student_id')
    @classmethod
    def validate_student_id(cls, value: str) -> str:
        normalized = value.strip()
        if not 3 <= len(normalized) <= 20:
            raise ValueError('Student ID must be between 3 and 20 characters long.')
        return normalized

    @field_validator('verification_code')
    @classmethod
    def validate_verification_code(cls, value: str) -> str:
        normalized = value.strip()
        if not VERIFICATION_CODE_PATTERN.match(normalized):
            raise ValueError('Verification code must be exactly 6 digits.')
        return normalized


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = normalize_email(value)
        if not normalized:
            raise ValueError('Email and password are required.')
        return normalized

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value:
            raise ValueError('Email and password are required.')
        return value


class RefreshRequest(BaseModel):
    refresh_token: str = Field(alias='refreshToken')

    model_config = {'populate_by_name': True}

    @field_validator('refresh_token')
    @classmethod
    def validate_refresh_token(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Refresh token required.')
        return normalized


class CompletePhaseRequest(BaseModel):
    completed_task_ids: list[str] = Field(default_factory=list, alias='completedTaskIds')

    model_config = {'populate_by_name': True}


class UnlockCodeRequest(BaseModel):
    code: str
    issued_by: str | None = Field(default=None, alias='issuedBy')

    model_config = {'populate_by_name': True}

    @field_validator('issued_by')
    @classmethod
    def validate_issued_by(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized[:100] or None


class CurrentPhaseRequest(BaseModel):
    current_phase: int = Field(alias='currentPhase')

    model_config = {'populate_by_name': True}

    @field_validator('current_phase')
    @classmethod
    def validate_current_phase(cls, value: int) -> int:
        return validate_phase_id(value)


class AssessmentRequest(BaseModel):
    assessment_level: str = Field(alias='assessmentLevel')

    model_config = {'populate_by_name': True}

    @field_validator('assessment_level')
    @classmethod
    def validate_assessment_level(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ASSESSMENT_LEVELS:
            raise ValueError('Assessment level must be beginner, intermediate, or advanced.')
        return normalized


class ProgressResponse(BaseModel):
    completed: list[int]
    unlocked: list[int]


class UserResponse(BaseModel):
    id: str
    email: str
    first_name: str = Field(serialization_alias='firstName')
    last_name: str = Field(serialization_alias='lastName')
    student_id: str = Field(serialization_alias='studentId')
    created_at: datetime = Field(serialization_alias='createdAt')
    last_login_at: datetime | None = Field(default=None, serialization_alias='lastLoginAt')
    current_phase: int = Field(serialization_alias='currentPhase')
    assessment_level: str | None = Field(default=None, serialization_alias='assessmentLevel')
    progress: ProgressResponse


class TokenPairResponse(BaseModel):
    access_token: str = Field(serialization_alias='accessToken')
    refresh_token: str = Field(serialization_alias='refreshToken')
    token_type: str = Field(default='bearer', serialization_alias='tokenType')


def first_error_message(errors: list) -> str:
    if not errors:
        return 'Invalid request.'
    error = errors[0]
    if error.get('type') == 'missing':
        location = error.get('loc') or ('field',)
        return f'{location[-1]} is required.'
    return error.get('msg', 'Invalid request.').removeprefix('Value error, ')


def parse_request(model: type[BaseModel], data: dict) -> BaseModel:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(first_error_message(exc.errors())) from exc
