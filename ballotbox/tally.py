# tally.py

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ballotbox.config import Config
from ballotbox.errors import StoreError, TallyIncompleteError
from ballotbox.models import Vote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tally:
    per_candidate_count: Dict[int, int] = field(default_factory=dict)
    total_voters: int = 0
    row_count: int = 0

    def count(self, candidate_id) -> int:
        return self.per_candidate_count.get(candidate_id, 0)


def fetch_vote_page(db: Session, start, size):
    """Return rows ``start`` .. ``start + size - 1`` as (candidate_id, student_id) pairs."""
    return db.execute(
        select(Vote.candidate_id, Vote.student_id)
        .order_by(Vote.id)
        .offset(start)
        .limit(size)
    ).all()

def compute_tally(db: Session, page_size=Config.TALLY_PAGE_SIZE, max_pages=Config.TALLY_MAX_PAGES,
                  fetch_page=fetch_vote_page) -> Tally:
    """
    Read every ballot entry page by page, then aggregate.

    Pages are requested until one comes back empty. At most ``max_pages``
    pages may hold rows; the empty page that ends the read does not count
    against the cap. Nothing is counted until the whole vote set is in
    memory, so a failed or runaway read raises instead of returning a short
    tally.
    """
    all_votes = []
    start = 0
    for page_number in range(max_pages + 1):
        try:
            votes = fetch_page(db, start, page_size)
        except SQLAlchemyError as e:
            logger.error(f"Fetching votes page {page_number} (offset {start}) failed: {e}")
            raise StoreError("Failed to load the results. Please try again.") from e
        if not votes:
            break
        if page_number == max_pages:
            logger.error(f"Tally read stopped after {max_pages} pages of {page_size} rows without reaching the end.")
            raise TallyIncompleteError("The results could not be loaded completely. Please try again.")
        all_votes.extend(votes)
        start += page_size

    unique_voters = {student_id for _, student_id in all_votes}
    vote_counts = Counter(candidate_id for candidate_id, _ in all_votes)

    logger.info(f"Tallied {len(all_votes)} votes from {len(unique_voters)} voters.")
    return Tally(
        per_candidate_count=dict(vote_counts),
        total_voters=len(unique_voters),
        row_count=len(all_votes),
    )


def percentage(count, category_total) -> int:
    """Share of ``category_total`` as a whole percent, rounding halves up."""
    if category_total == 0:
        return 0
    return math.floor(count / category_total * 100 + 0.5)

def category_total(tally: Tally, candidate_ids) -> int:
    return sum(tally.count(candidate_id) for candidate_id in candidate_ids)

def rank_candidates(entries):
    # sorted() is stable: equal counts keep their catalog order
    return sorted(entries, key=lambda entry: entry['vote_count'], reverse=True)

def leading_candidates(entries):
    """Every candidate sharing the highest count; empty while nobody has a vote."""
    if not entries:
        return []
    top = max(entry['vote_count'] for entry in entries)
    if top == 0:
        return []
    return [entry for entry in entries if entry['vote_count'] == top]


def build_results(categories, candidates, tally: Tally):
    """
    Nest the tally under the catalog: one dict per category, in catalog order,
    with each of its candidates' counts and category-relative percentages.
    """
    results = []
    for category in categories:
        category_candidates = [c for c in candidates if c.category_id == category.id]
        total_votes = category_total(tally, [c.id for c in category_candidates])
        entries = [
            {
                'candidate_id': candidate.id,
                'candidate_name': candidate.name,
                'class_level': candidate.class_level,
                'vote_count': tally.count(candidate.id),
                'percentage': percentage(tally.count(candidate.id), total_votes),
            }
            for candidate in category_candidates
        ]
        results.append({
            'category_id': category.id,
            'category_name': category.name,
            'total_votes': total_votes,
            'candidates': entries,
            'leader_ids': [entry['candidate_id'] for entry in leading_candidates(entries)],
        })
    return results
