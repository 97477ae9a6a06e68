# archive.py

import copy
import datetime
import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ballotbox.catalog import list_candidates, list_categories
from ballotbox.config import Config
from ballotbox.errors import NotFoundError, StoreError, ValidationError
from ballotbox.models import ArchivedElection, Vote, Voter
from ballotbox.tally import Tally, build_results, compute_tally

logger = logging.getLogger(__name__)


def archive_results(db: Session, name, categories, candidates, tally: Tally, archived_by='admin', now=None):
    """
    Freeze the given tally under ``name``.

    Args:
        db (Session): The database session.
        name (str): Election name shown in the archive list.
        categories (list[Category]): Categories at the time of archiving.
        candidates (list[Candidate]): Candidates at the time of archiving.
        tally (Tally): The tally computed just before archiving.
        archived_by (str): Username of the administrator.
        now (datetime): Archive timestamp, defaults to utcnow.

    Returns:
        ArchivedElection: The stored snapshot.
    """
    name = (name or '').strip()
    if not name:
        raise ValidationError("Please enter a name for this archive.")

    # Deep copy so the stored JSON shares nothing with live objects
    results = copy.deepcopy(build_results(categories, candidates, tally))
    archived = ArchivedElection(
        election_name=name,
        archived_at=now or datetime.datetime.utcnow(),
        total_voters=tally.total_voters,
        results=results,
        archived_by=archived_by,
    )
    db.add(archived)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database commit failed while archiving '{name}': {e}")
        raise StoreError("Failed to archive results. Please try again.") from e
    db.refresh(archived)

    logger.info(f"Archived election '{name}' (ID: {archived.id}) with {tally.total_voters} voters.")
    return archived

def archive_current(db: Session, name, archived_by='admin', page_size=Config.TALLY_PAGE_SIZE,
                    max_pages=Config.TALLY_MAX_PAGES, now=None):
    """Tally the live votes and archive them against the live catalog."""
    tally = compute_tally(db, page_size=page_size, max_pages=max_pages)
    return archive_results(
        db, name, list_categories(db), list_candidates(db), tally, archived_by=archived_by, now=now,
    )

def list_archives(db: Session):
    return db.scalars(
        select(ArchivedElection).order_by(ArchivedElection.archived_at.desc(), ArchivedElection.id.desc())
    ).all()

def get_archive(db: Session, archive_id) -> ArchivedElection:
    archived = db.get(ArchivedElection, archive_id)
    if archived is None:
        raise NotFoundError(f"Archived election {archive_id} was not found.")
    return archived

def delete_archive(db: Session, archive_id):
    archived = get_archive(db, archive_id)
    db.delete(archived)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database commit failed while deleting archive {archive_id}: {e}")
        raise StoreError("Failed to delete the archive. Please try again.") from e
    logger.info(f"Deleted archived election {archive_id}.")


def reset_votes(db: Session, confirmation_phrase, flags=None, expected_phrase=Config.RESET_CONFIRMATION_PHRASE):
    """
    Delete every ballot entry and clear every voted flag.

    Both bulk statements commit together; a failure rolls back both.
    Returns the number of deleted ballot entries.
    """
    if confirmation_phrase != expected_phrase:
        logger.warning("Vote reset rejected: confirmation phrase did not match.")
        raise ValidationError(f'Please type "{expected_phrase}" to confirm.')

    try:
        deleted = db.execute(delete(Vote).execution_options(synchronize_session=False))
        db.execute(
            update(Voter)
            .values(has_voted=False, voted_at=None)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error while resetting votes: {e}")
        raise StoreError("Failed to reset votes. Please try again.") from e

    if flags is not None:
        flags.clear_voted_markers()

    logger.info(f"All votes have been reset ({deleted.rowcount} ballot entries deleted).")
    return deleted.rowcount
