"""Tests for entry submission and the submissions flag."""

from collections.abc import Callable

import pytest
from sqlalchemy.orm import Session

from stream_raffle.core.settings import settings
from stream_raffle.models import Entry, RaffleSession, SystemFlag, User
from stream_raffle.models.system_flag import SUBMISSIONS_OPEN_KEY
from stream_raffle.services.entries import (
    SUBMISSION_ELIGIBLE,
    SUBMISSION_HAS_ENTRY,
    SUBMISSION_NO_ACTIVE_SESSION,
    delete_entry,
    get_submissions_open,
    list_entries,
    resolve_submission_state,
    set_submissions_open,
    submit_entry,
    validate_link,
)
from stream_raffle.services.results import ErrorCode
from stream_raffle.services.session_manager import ensure_system_session


def test_submissions_default_open_until_first_winner(
    db_session: Session,
    active_session: RaffleSession,
    make_entry: Callable[..., Entry],
) -> None:
    assert get_submissions_open(db_session) is True
    make_entry(active_session, name="lucky", is_winner=True)
    assert get_submissions_open(db_session) is False


def test_set_submissions_flag_is_stored_on_system_session(db_session: Session) -> None:
    assert set_submissions_open(db_session, False).ok
    assert get_submissions_open(db_session) is False

    assert set_submissions_open(db_session, True).ok
    assert get_submissions_open(db_session) is True
    flag = db_session.get(SystemFlag, SUBMISSIONS_OPEN_KEY)
    assert flag.session_id == ensure_system_session(db_session).id
    assert db_session.query(SystemFlag).count() == 1


def test_flag_never_shows_up_as_an_entry(db_session: Session, active_session: RaffleSession) -> None:
    set_submissions_open(db_session, True)

    assert list_entries(db_session) == []


def test_resolve_submission_state(
    db_session: Session,
    make_user: Callable[..., User],
    make_session: Callable[..., RaffleSession],
    make_entry: Callable[..., Entry],
) -> None:
    user = make_user()
    assert resolve_submission_state(db_session, user.id).kind == SUBMISSION_NO_ACTIVE_SESSION

    session = make_session()
    state = resolve_submission_state(db_session, user.id)
    assert state.kind == SUBMISSION_ELIGIBLE
    assert state.session_id == session.id

    entry = make_entry(session, user)
    state = resolve_submission_state(db_session, user.id)
    assert state.kind == SUBMISSION_HAS_ENTRY
    assert state.entry_id == entry.id


def test_submit_entry_for_follower(
    db_session: Session,
    active_session: RaffleSession,
    make_user: Callable[..., User],
) -> None:
    user = make_user(display_name="Ada")

    result = submit_entry(db_session, user_id=user.id, link="https://soundcloud.com/ada/demo", notes=" hi ")

    assert result.ok
    assert result.value.name == "Ada"
    assert result.value.session_id == active_session.id
    assert result.value.notes == "hi"


def test_submit_entry_twice_is_rejected(
    db_session: Session,
    active_session: RaffleSession,
    make_user: Callable[..., User],
) -> None:
    user = make_user()
    assert submit_entry(db_session, user_id=user.id).ok

    result = submit_entry(db_session, user_id=user.id)

    assert result.error is ErrorCode.ALREADY_ENTERED


def test_submit_entry_requires_follow(
    db_session: Session,
    active_session: RaffleSession,
    make_user: Callable[..., User],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    user = make_user(is_follower=False)
    assert submit_entry(db_session, user_id=user.id).error is ErrorCode.NOT_FOLLOWING

    monkeypatch.setattr(settings, "require_follow_to_enter", False)
    assert submit_entry(db_session, user_id=user.id).ok


def test_submit_entry_when_closed_or_inactive(db_session: Session) -> None:
    assert submit_entry(db_session, name="walk-in").error is ErrorCode.NO_ACTIVE_SESSION

    set_submissions_open(db_session, False)
    assert submit_entry(db_session, name="walk-in").error is ErrorCode.SUBMISSIONS_CLOSED


def test_anonymous_entry_needs_a_name(db_session: Session, active_session: RaffleSession) -> None:
    assert submit_entry(db_session).error is ErrorCode.VALIDATION_ERROR
    assert submit_entry(db_session, name="walk-in").value.user_id is None


@pytest.mark.parametrize(
    "link",
    ["ftp://soundcloud.com/x", "not a url", "https://evil.example.com/track"],
)
def test_validate_link_rejects(link: str) -> None:
    with pytest.raises(ValueError):
        validate_link(link)


def test_validate_link_accepts_subdomains() -> None:
    assert validate_link("  https://www.dropbox.com/s/abc ") == "https://www.dropbox.com/s/abc"
    assert validate_link("https://on.soundcloud.com/x") == "https://on.soundcloud.com/x"
    assert validate_link("") is None


def test_delete_entry(
    db_session: Session,
    active_session: RaffleSession,
    make_entry: Callable[..., Entry],
) -> None:
    entry = make_entry(active_session, name="gone")
    entry_id = entry.id

    assert delete_entry(db_session, entry_id).ok
    assert db_session.get(Entry, entry_id) is None
    assert delete_entry(db_session, entry_id).error is ErrorCode.NOT_FOUND
