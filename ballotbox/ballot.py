# ballot.py

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ballotbox.catalog import list_candidates, list_categories
from ballotbox.errors import ValidationError
from ballotbox.submission import submit_ballot

logger = logging.getLogger(__name__)

ROLE_ADMIN = 'admin'
ROLE_STUDENT = 'student'


@dataclass(frozen=True)
class Identity:
    """A login already resolved by the login collaborator."""
    role: str
    student_id: Optional[str] = None
    username: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self):
        return {'role': self.role, 'studentId': self.student_id, 'username': self.username}

    @classmethod
    def from_dict(cls, data):
        if not data or data.get('role') not in (ROLE_ADMIN, ROLE_STUDENT):
            return None
        return cls(role=data['role'], student_id=data.get('studentId'), username=data.get('username'))


class BallotSession:
    """
    In-progress choices of one voter, one candidate per category.

    Nothing here touches the store until ``submit``; the state is dropped
    after a successful submission or on logout.
    """

    def __init__(self, student_id, categories, candidates, selections=None, current_index=0):
        self.student_id = student_id
        self.categories = list(categories)
        self.candidates = list(candidates)
        self.selections = {}
        # A saved cursor may point past a category deleted since
        self.current_index = max(0, min(int(current_index or 0), len(self.categories) - 1))
        self.submitted = False
        for category_id, candidate_id in (selections or {}).items():
            # Selections kept in a cookie come back with string keys
            try:
                self.select_candidate(int(category_id), int(candidate_id))
            except ValidationError:
                logger.info(f"Dropped stale choice {category_id} -> {candidate_id} for student {student_id}.")

    @classmethod
    def load(cls, db: Session, student_id, selections=None, current_index=0):
        return cls(student_id, list_categories(db), list_candidates(db), selections, current_index)

    def _category_ids(self):
        return [category.id for category in self.categories]

    def candidates_for(self, category_id):
        return [c for c in self.candidates if c.category_id == category_id]

    def select_candidate(self, category_id, candidate_id):
        if category_id not in self._category_ids():
            raise ValidationError("That category is not on this ballot.")
        if candidate_id not in [c.id for c in self.candidates_for(category_id)]:
            raise ValidationError("That candidate is not running in this category.")
        self.selections[category_id] = candidate_id

    def is_complete(self) -> bool:
        return all(category_id in self.selections for category_id in self._category_ids())

    def missing_categories(self):
        return [category for category in self.categories if category.id not in self.selections]

    @property
    def current_category(self):
        if not self.categories:
            return None
        return self.categories[self.current_index]

    def next_category(self):
        if self.current_index < len(self.categories) - 1:
            self.current_index += 1
        return self.current_category

    def previous_category(self):
        if self.current_index > 0:
            self.current_index -= 1
        return self.current_category

    @property
    def progress(self) -> float:
        if not self.categories:
            return 0
        return (self.current_index + 1) / len(self.categories) * 100

    def discard(self):
        self.selections = {}
        self.current_index = 0

    def submit(self, db: Session, flags=None):
        if not self.is_complete():
            missing = ', '.join(category.name for category in self.missing_categories())
            raise ValidationError(f"Please select a candidate for: {missing}.")
        votes = submit_ballot(db, self.student_id, dict(self.selections), flags=flags)
        self.discard()
        self.submitted = True
        return votes
