# catalog.py

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ballotbox.errors import NotFoundError, StoreError, ValidationError
from ballotbox.models import Candidate, Category, Vote

logger = logging.getLogger(__name__)

CATEGORY_FIELDS = ('name', 'description', 'icon', 'display_order')
CANDIDATE_FIELDS = ('name', 'category_id', 'image_url', 'manifesto', 'class_level')

# Null updates fall back to these; any other field may not be set to null
CATEGORY_DEFAULTS = {'description': '', 'icon': 'star'}
CANDIDATE_DEFAULTS = {'image_url': '', 'manifesto': '', 'class_level': ''}


def _commit(db: Session, action):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database commit failed while trying to {action}: {e}")
        raise StoreError(f"Failed to {action}. Please try again.") from e


def _clean_name(name, what):
    name = (name or '').strip()
    if not name:
        raise ValidationError(f"{what} name cannot be empty.")
    return name


def _clean_value(field, value, defaults, what):
    if value is not None:
        return value
    if field in defaults:
        return defaults[field]
    raise ValidationError(f"{what} {field.replace('_', ' ')} cannot be empty.")


def list_categories(db: Session):
    return db.scalars(
        select(Category).order_by(Category.display_order, Category.id)
    ).all()

def get_category(db: Session, category_id) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} was not found.")
    return category

def create_category(db: Session, name, description='', icon='star', display_order=0) -> Category:
    category = Category(
        name=_clean_name(name, "Category"),
        description=description or '',
        icon=icon or 'star',
        display_order=display_order or 0,
    )
    db.add(category)
    _commit(db, "save category")
    db.refresh(category)
    logger.info(f"Created category '{category.name}' (ID: {category.id}).")
    return category

def update_category(db: Session, category_id, **fields) -> Category:
    category = get_category(db, category_id)
    changes = {}
    for field, value in fields.items():
        if field not in CATEGORY_FIELDS:
            raise ValidationError(f"Unknown category field '{field}'.")
        if field == 'name':
            value = _clean_name(value, "Category")
        else:
            value = _clean_value(field, value, CATEGORY_DEFAULTS, "Category")
        changes[field] = value
    for field, value in changes.items():
        setattr(category, field, value)
    _commit(db, "save category")
    db.refresh(category)
    logger.info(f"Updated category {category_id}: {sorted(fields)}")
    return category

def delete_category(db: Session, category_id):
    """Delete a category together with all of its candidates and their votes."""
    category = get_category(db, category_id)
    name = category.name
    db.delete(category)
    _commit(db, "delete category")
    logger.info(f"Deleted category '{name}' (ID: {category_id}) and its candidates.")


def list_candidates(db: Session, category_id=None):
    stmt = select(Candidate)
    if category_id is not None:
        stmt = stmt.where(Candidate.category_id == category_id)
    return db.scalars(stmt.order_by(Candidate.created_at, Candidate.id)).all()

def get_candidate(db: Session, candidate_id) -> Candidate:
    candidate = db.get(Candidate, candidate_id)
    if candidate is None:
        raise NotFoundError(f"Candidate {candidate_id} was not found.")
    return candidate

def create_candidate(db: Session, name, category_id, image_url='', manifesto='', class_level='') -> Candidate:
    name = _clean_name(name, "Candidate")
    if db.get(Category, category_id) is None:
        raise ValidationError("Please choose an existing category for the candidate.")
    candidate = Candidate(
        name=name,
        category_id=category_id,
        image_url=image_url or '',
        manifesto=manifesto or '',
        class_level=class_level or '',
    )
    db.add(candidate)
    _commit(db, "save candidate")
    db.refresh(candidate)
    logger.info(f"Created candidate '{candidate.name}' (ID: {candidate.id}) in category {category_id}.")
    return candidate

def update_candidate(db: Session, candidate_id, **fields) -> Candidate:
    candidate = get_candidate(db, candidate_id)
    changes = {}
    for field, value in fields.items():
        if field not in CANDIDATE_FIELDS:
            raise ValidationError(f"Unknown candidate field '{field}'.")
        if field == 'name':
            value = _clean_name(value, "Candidate")
        else:
            value = _clean_value(field, value, CANDIDATE_DEFAULTS, "Candidate")
        if field == 'category_id' and value != candidate.category_id:
            if db.get(Category, value) is None:
                raise ValidationError("Please choose an existing category for the candidate.")
            # Votes carry the category they were cast in
            vote_count = db.scalar(
                select(func.count(Vote.id)).where(Vote.candidate_id == candidate_id)
            )
            if vote_count:
                raise ValidationError(
                    f"'{candidate.name}' already has votes and cannot move to another category."
                )
        changes[field] = value
    for field, value in changes.items():
        setattr(candidate, field, value)
    _commit(db, "save candidate")
    db.refresh(candidate)
    logger.info(f"Updated candidate {candidate_id}: {sorted(fields)}")
    return candidate

def delete_candidate(db: Session, candidate_id):
    candidate = get_candidate(db, candidate_id)
    name = candidate.name
    db.delete(candidate)
    _commit(db, "delete candidate")
    logger.info(f"Deleted candidate '{name}' (ID: {candidate_id}).")
