from datetime import timedelta

from pathfinder.models.verification import VerificationRecord
from pathfinder.services.verification_ledger import (
    CheckOutcome,
    ConsumeOutcome,
    VerificationLedger,
    generate_code,
)

EMAIL = 'jdoe@students.bowiestate.edu'


def _ledger_with_code(session_factory, clock, code: str) -> VerificationLedger:
    return VerificationLedger(session_factory, clock=clock, code_generator=lambda: code)


def _record(session_factory, email: str = EMAIL):
    db = session_factory()
    try:
        return db.query(VerificationRecord).filter(VerificationRecord.email == email).first()
    finally:
        db.close()


def test_generate_code_is_six_digits() -> None:
    for _ in range(50):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()


def test_issue_creates_fresh_record(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')

    code = ledger.issue(EMAIL)

    record = _record(session_factory)
    assert code == '482913'
    assert record.code == '482913'
    assert record.attempts == 0
    assert record.verified is False
    assert record.expires_at == clock.now + timedelta(hours=1)


def test_issue_overwrites_existing_record(session_factory, clock) -> None:
    codes = iter(['111111', '222222'])
    ledger = VerificationLedger(session_factory, clock=clock, code_generator=lambda: next(codes))
    ledger.issue(EMAIL)
    ledger.check(EMAIL, '000000')
    clock.advance(minutes=5)

    ledger.issue(EMAIL)

    record = _record(session_factory)
    assert record.code == '222222'
    assert record.attempts == 0
    assert record.expires_at == clock.now + timedelta(hours=1)
    db = session_factory()
    try:
        assert db.query(VerificationRecord).count() == 1
    finally:
        db.close()


def test_check_without_record_is_invalid(ledger) -> None:
    assert ledger.check(EMAIL, '123456') is CheckOutcome.INVALID


def test_check_correct_code_just_before_expiry_verifies(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue(EMAIL)
    clock.advance(hours=1, seconds=-1)

    assert ledger.check(EMAIL, '482913') is CheckOutcome.VERIFIED

    record = _record(session_factory)
    assert record.verified is True
    assert record.verified_at == clock.now


def test_check_after_expiry_is_expired_even_with_correct_code(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue(EMAIL)
    clock.advance(hours=1, seconds=1)

    assert ledger.check(EMAIL, '482913') is CheckOutcome.EXPIRED
    assert _record(session_factory) is None


def test_expiry_takes_precedence_over_attempts(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue(EMAIL)
    ledger.check(EMAIL, '000000')
    ledger.check(EMAIL, '000001')
    clock.advance(hours=2)

    assert ledger.check(EMAIL, '000002') is CheckOutcome.EXPIRED


def test_three_wrong_attempts_delete_the_record(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue(EMAIL)

    assert ledger.check(EMAIL, '000000') is CheckOutcome.INVALID
    assert ledger.check(EMAIL, '000001') is CheckOutcome.INVALID
    assert ledger.check(EMAIL, '000002') is CheckOutcome.ATTEMPTS_EXHAUSTED

    assert _record(session_factory) is None
    assert ledger.check(EMAIL, '482913') is CheckOutcome.INVALID


def test_repeated_successful_check_moves_verified_at(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue(EMAIL)
    ledger.check(EMAIL, '482913')
    clock.advance(minutes=10)

    assert ledger.check(EMAIL, '482913') is CheckOutcome.VERIFIED
    assert _record(session_factory).verified_at == clock.now


def test_reverification_restarts_freshness_window(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue(EMAIL)
    ledger.check(EMAIL, '482913')
    clock.advance(minutes=50)
    ledger.check(EMAIL, '482913')
    clock.advance(minutes=20)

    assert ledger.consume_if_fresh(EMAIL) is ConsumeOutcome.VERIFIED


def test_non_ascii_code_counts_as_a_wrong_attempt(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue(EMAIL)

    assert ledger.check(EMAIL, '\uff14\uff18\uff12\uff19\uff11\uff13') is CheckOutcome.INVALID
    assert _record(session_factory).attempts == 1


def test_consume_requires_verification(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    assert ledger.consume_if_fresh(EMAIL) is ConsumeOutcome.NOT_VERIFIED

    ledger.issue(EMAIL)

    assert ledger.consume_if_fresh(EMAIL) is ConsumeOutcome.NOT_VERIFIED
    assert _record(session_factory) is not None


def test_consume_is_single_use(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue(EMAIL)
    ledger.check(EMAIL, '482913')
    clock.advance(minutes=59)

    assert ledger.consume_if_fresh(EMAIL) is ConsumeOutcome.VERIFIED
    assert _record(session_factory) is None
    assert ledger.consume_if_fresh(EMAIL) is ConsumeOutcome.NOT_VERIFIED


def test_consume_after_freshness_window_is_stale(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue(EMAIL)
    clock.advance(minutes=30)
    ledger.check(EMAIL, '482913')
    clock.advance(hours=1, seconds=1)

    assert ledger.consume_if_fresh(EMAIL) is ConsumeOutcome.STALE


def test_freshness_is_measured_from_verification_not_issue(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue(EMAIL)
    clock.advance(minutes=50)
    ledger.check(EMAIL, '482913')
    # The code itself expired by now, the verification has not.
    clock.advance(minutes=30)

    assert ledger.consume_if_fresh(EMAIL) is ConsumeOutcome.VERIFIED


def test_purge_expired_keeps_fresh_verifications(session_factory, clock) -> None:
    ledger = _ledger_with_code(session_factory, clock, '482913')
    ledger.issue('stale@students.bowiestate.edu')
    ledger.issue(EMAIL)
    clock.advance(minutes=50)
    ledger.check(EMAIL, '482913')
    clock.advance(minutes=20)

    assert ledger.purge_expired() == 1
    assert _record(session_factory, 'stale@students.bowiestate.edu') is None
    assert _record(session_factory) is not None
