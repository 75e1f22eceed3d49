"""Entry submission, eligibility, and the submissions-open flag."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stream_raffle.core.settings import settings as app_settings
from stream_raffle.db.time import utcnow
from stream_raffle.models import Entry, SystemFlag, User
from stream_raffle.models.system_flag import SUBMISSIONS_OPEN_KEY
from stream_raffle.services.results import ErrorCode, ServiceResult
from stream_raffle.services.session_manager import ensure_system_session, get_current_session

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_NOTES_LENGTH = 1000

SUBMISSION_NO_ACTIVE_SESSION = "NO_ACTIVE_SESSION"
SUBMISSION_ELIGIBLE = "ELIGIBLE"
SUBMISSION_HAS_ENTRY = "HAS_ENTRY_IN_ACTIVE_SESSION"


@dataclass(frozen=True)
class SubmissionState:
    kind: str
    session_id: int | None = None
    entry_id: int | None = None


def get_submissions_open(db: Session) -> bool:
    """Return whether viewers may submit entries.

    When the flag has never been set, submissions count as open until the
    first winner is drawn.
    """
    flag = db.get(SystemFlag, SUBMISSIONS_OPEN_KEY)
    if flag is not None:
        return flag.value == "open"
    has_winner = db.scalars(select(Entry.id).where(Entry.is_winner.is_(True)).limit(1)).first()
    return has_winner is None


def set_submissions_open(db: Session, submissions_open: bool) -> ServiceResult[bool]:
    """Persist the submissions-open flag."""
    try:
        system = ensure_system_session(db)
        flag = db.get(SystemFlag, SUBMISSIONS_OPEN_KEY)
        value = "open" if submissions_open else "closed"
        if flag is None:
            db.add(SystemFlag(key=SUBMISSIONS_OPEN_KEY, value=value, session_id=system.id))
        else:
            flag.value = value
            flag.session_id = system.id
            flag.updated_at = utcnow()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to update submissions flag", exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info("Submissions %s", value)
    return ServiceResult.success(submissions_open)


def resolve_submission_state(db: Session, user_id: int) -> SubmissionState:
    """Say whether ``user_id`` may submit right now, and what blocks them if not."""
    session = get_current_session(db)
    if session is None:
        return SubmissionState(kind=SUBMISSION_NO_ACTIVE_SESSION)

    entry_id = db.scalars(
        select(Entry.id)
        .where(
            Entry.session_id == session.id,
            Entry.user_id == user_id,
            Entry.is_winner.is_(False),
        )
        .limit(1)
    ).first()
    if entry_id is not None:
        return SubmissionState(kind=SUBMISSION_HAS_ENTRY, session_id=session.id, entry_id=entry_id)
    return SubmissionState(kind=SUBMISSION_ELIGIBLE, session_id=session.id)


def validate_link(link: str | None) -> str | None:
    """Return the cleaned link or raise ``ValueError`` if it is not allowed."""
    if link is None or not link.strip():
        return None
    cleaned = link.strip()
    parts = urlsplit(cleaned)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ValueError("Invalid link URL format")
    host = parts.hostname.lower()
    if host.startswith("www."):
        host = host[4:]
    allowed = app_settings.allowed_link_domains
    if allowed and not any(host == domain or host.endswith("." + domain) for domain in allowed):
        raise ValueError("Link must point to an allowed domain")
    return cleaned


def submit_entry(
    db: Session,
    name: str | None = None,
    user_id: int | None = None,
    link: str | None = None,
    notes: str | None = None,
) -> ServiceResult[Entry]:
    """Create an entry in the active session.

    Linked users are serialized on their row so a double submit cannot
    create two open entries for the same session.
    """
    try:
        cleaned_link = validate_link(link)
    except ValueError as err:
        return ServiceResult.failure(ErrorCode.VALIDATION_ERROR, str(err))
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        return ServiceResult.failure(ErrorCode.VALIDATION_ERROR, "Notes are too long")

    try:
        if not get_submissions_open(db):
            return ServiceResult.failure(ErrorCode.SUBMISSIONS_CLOSED, "Submissions are closed")
        session = get_current_session(db)
        if session is None:
            return ServiceResult.failure(ErrorCode.NO_ACTIVE_SESSION, "No active session")

        user: User | None = None
        if user_id is not None:
            user = db.scalars(
                select(User)
                .where(User.id == user_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).first()
            if user is None:
                db.rollback()
                return ServiceResult.failure(ErrorCode.NOT_FOUND, "User not found")
            if app_settings.require_follow_to_enter and not user.is_follower:
                db.rollback()
                return ServiceResult.failure(
                    ErrorCode.NOT_FOLLOWING,
                    "You must follow the channel to enter the raffle",
                )
            state = resolve_submission_state(db, user.id)
            if state.kind == SUBMISSION_HAS_ENTRY:
                db.rollback()
                return ServiceResult.failure(
                    ErrorCode.ALREADY_ENTERED,
                    "You already have an active submission",
                )

        display_name = (name or "").strip() or (user.label if user is not None else "")
        if not display_name:
            db.rollback()
            return ServiceResult.failure(ErrorCode.VALIDATION_ERROR, "A name is required")
        if len(display_name) > MAX_NAME_LENGTH:
            db.rollback()
            return ServiceResult.failure(ErrorCode.VALIDATION_ERROR, "Name is too long")

        entry = Entry(
            session_id=session.id,
            user_id=user.id if user is not None else None,
            name=display_name,
            link=cleaned_link,
            notes=notes.strip() if notes else None,
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to submit entry", exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info("Entry %s submitted to session %s", entry.id, entry.session_id)
    return ServiceResult.success(entry)


def list_entries(db: Session, session_id: int | None = None) -> list[Entry]:
    """Return entries for ``session_id`` (default: the active session), oldest first."""
    if session_id is None:
        session = get_current_session(db)
        if session is None:
            return []
        session_id = session.id
    return list(
        db.scalars(
            select(Entry).where(Entry.session_id == session_id).order_by(Entry.created_at, Entry.id)
        )
    )


def delete_entry(db: Session, entry_id: int) -> ServiceResult[int]:
    """Remove an entry (admin action)."""
    try:
        entry = db.get(Entry, entry_id)
        if entry is None:
            return ServiceResult.failure(ErrorCode.NOT_FOUND, "Entry not found")
        db.delete(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to delete entry %s", entry_id, exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info("Deleted entry %s", entry_id)
    return ServiceResult.success(entry_id)
