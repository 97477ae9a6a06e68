# submission.py

import datetime
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ballotbox.catalog import list_categories
from ballotbox.errors import AlreadyVotedError, PartialBallotError, StoreError, ValidationError
from ballotbox.models import Candidate, Vote, Voter

logger = logging.getLogger(__name__)

BALLOT_NONE = 'none'
BALLOT_COMPLETE = 'complete'
BALLOT_PARTIAL = 'partial'


def _entry_count(db: Session, student_id) -> int:
    return db.scalar(select(func.count(Vote.id)).where(Vote.student_id == student_id)) or 0

def _voted_flag(db: Session, student_id):
    # Column query, so a voter object cached in the session is never trusted
    return db.scalar(select(Voter.has_voted).where(Voter.student_id == student_id))

def ballot_status(db: Session, student_id) -> str:
    """
    Classify what the store holds for a voter.

    A ballot is ``partial`` when entries exist but the voter was never
    marked as voted, which only a writer without a transaction can leave
    behind.
    """
    if _entry_count(db, student_id) == 0:
        return BALLOT_NONE
    if _voted_flag(db, student_id):
        return BALLOT_COMPLETE
    return BALLOT_PARTIAL


def _ballot_entries(db: Session, selection):
    """Check ``selection`` against the live catalog; return (category_id, candidate_id) pairs."""
    categories = list_categories(db)
    if not categories:
        raise ValidationError("There are no categories to vote in yet.")

    category_ids = {category.id for category in categories}
    unknown = [category_id for category_id in selection if category_id not in category_ids]
    if unknown:
        raise ValidationError("Your ballot contains a category that no longer exists. Please review it.")

    missing = [category.name for category in categories if selection.get(category.id) is None]
    if missing:
        raise ValidationError(f"Please select a candidate for: {', '.join(missing)}.")

    candidate_categories = dict(
        db.execute(
            select(Candidate.id, Candidate.category_id).where(Candidate.id.in_(list(selection.values())))
        ).all()
    )
    entries = []
    for category in categories:
        candidate_id = selection[category.id]
        if candidate_categories.get(candidate_id) != category.id:
            raise ValidationError(f"Your choice for {category.name} is not a candidate in that category.")
        entries.append((category.id, candidate_id))
    return entries


def submit_ballot(db: Session, voter_id, selection, flags=None, now=None):
    """
    Persist a complete ballot for ``voter_id`` as a single transaction.

    The voter row is claimed with a conditional update before any entry is
    written, and the (student_id, category_id) unique key backs that up, so
    two submissions racing for the same voter cannot both land. Either every
    entry is committed together with the voted flag or nothing is.

    Args:
        db (Session): The database session.
        voter_id (str): The student ID casting the ballot.
        selection (dict): Category ID -> candidate ID.
        flags (FlagStore): Optional device markers, updated after success.
        now (datetime): Timestamp for the entries, defaults to utcnow.

    Returns:
        list[Vote]: The committed ballot entries.
    """
    voted = _voted_flag(db, voter_id) if voter_id else None
    if voted is None:
        raise ValidationError("Please log in with a registered student ID before voting.")

    if voted:
        logger.info(f"Student {voter_id} tried to vote again.")
        raise AlreadyVotedError("You have already voted. Each student can only vote once.")
    if flags is not None and flags.is_marked_voted(voter_id):
        logger.warning(f"Ignoring stale local voted marker for student {voter_id}.")

    entries = _ballot_entries(db, selection)

    if ballot_status(db, voter_id) == BALLOT_PARTIAL:
        logger.error(f"Student {voter_id} has ballot entries but is not marked as voted.")
        raise PartialBallotError(
            "A previous ballot for this student was only partly recorded. Please contact an administrator."
        )

    now = now or datetime.datetime.utcnow()
    try:
        claimed = db.execute(
            update(Voter)
            .where(Voter.student_id == voter_id, Voter.has_voted.is_(False))
            .values(has_voted=True, voted_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            db.rollback()
            logger.info(f"Student {voter_id} was already claimed by a concurrent submission.")
            raise AlreadyVotedError("You have already voted. Each student can only vote once.")

        votes = [
            Vote(candidate_id=candidate_id, category_id=category_id, student_id=voter_id, created_at=now)
            for category_id, candidate_id in entries
        ]
        db.add_all(votes)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if _entry_count(db, voter_id) > 0:
            logger.info(f"Duplicate ballot for student {voter_id} rejected by the store.")
            raise AlreadyVotedError("You have already voted. Each student can only vote once.") from e
        logger.error(f"Ballot for student {voter_id} violated a store constraint: {e}")
        raise StoreError("Failed to submit your ballot. Please review it and try again.") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database commit failed during ballot submission for {voter_id}: {e}")
        raise StoreError("Failed to submit your ballot. Nothing was recorded, please try again.") from e

    if flags is not None:
        flags.mark_voted(voter_id)

    logger.info(f"Ballot with {len(votes)} entries submitted by student {voter_id}.")
    return votes
