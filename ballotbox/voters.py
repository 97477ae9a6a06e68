# voters.py

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ballotbox.errors import NotFoundError, StoreError, ValidationError
from ballotbox.models import Voter

logger = logging.getLogger(__name__)


def get_voter(db: Session, student_id):
    return db.scalar(select(Voter).where(Voter.student_id == student_id))

def resolve_student(db: Session, student_id, name) -> Voter:
    """
    Look up a student by ID and name, registering them on first login.

    Args:
        db (Session): The database session.
        student_id (str): The student identifier typed on the login form.
        name (str): The student's display name.

    Returns:
        Voter: The persisted voter row.
    """
    student_id = (student_id or '').strip()
    name = (name or '').strip()
    if not student_id or not name:
        raise ValidationError("Please fill in all fields.")

    voter = get_voter(db, student_id)
    if voter is None:
        voter = Voter(student_id=student_id, name=name, class_level='Unknown')
        db.add(voter)
        try:
            db.commit()
            logger.info(f"Registered new student {student_id}.")
            return voter
        except IntegrityError:
            # Registered by a concurrent login; fall through to the name check
            db.rollback()
            voter = get_voter(db, student_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database commit failed while registering {student_id}: {e}")
            raise StoreError("Failed to register student. Please try again.") from e

    if voter is None or voter.name != name:
        logger.warning(f"Login rejected for student {student_id}: name mismatch.")
        raise ValidationError("Invalid student ID or name. Please check your credentials.")
    return voter

def has_voted(db: Session, student_id) -> bool:
    """Authoritative voted check, read from the store."""
    voter = get_voter(db, student_id)
    if voter is None:
        raise NotFoundError(f"Student {student_id} is not registered.")
    return bool(voter.has_voted)
