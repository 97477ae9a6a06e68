# seed.py
#
# Seed the catalog and, for load testing the results page, fill the store
# with dummy ballots. Run with:
#   python -m ballotbox.seed            (catalog only)
#   python -m ballotbox.seed 200        (catalog plus 200 dummy voters)

import logging
import random
import sys

from sqlalchemy.orm import Session

from ballotbox import catalog
from ballotbox.submission import submit_ballot
from ballotbox.voters import resolve_student

logger = logging.getLogger(__name__)

# Categories with consistent display order, and the candidates standing in each
DEFAULT_CATALOG = [
    ("Head Prefect", "Leads the prefect body", "crown", [("Ukta", "Form 3"), ("Arsh", "Form 3")]),
    ("Entertainment Prefect", "Runs school events", "sparkles", [("Viney", "Form 2"), ("Aarav", "Form 3")]),
    ("Health Prefect", "Looks after the sick bay", "heart", [("Julia", "Form 2"), ("Diana", "Form 2")]),
    ("Library Prefect", "Keeps the library in order", "book", [("Charlie", "Form 1"), ("Bob", "Form 2")]),
]


def seed_catalog(db: Session, entries=DEFAULT_CATALOG):
    """Add the default categories and candidates unless categories already exist."""
    if catalog.list_categories(db):
        logger.info("Catalog already has categories; skipping seed.")
        return []

    created = []
    for order, (name, description, icon, candidates) in enumerate(entries, start=1):
        category = catalog.create_category(db, name, description=description, icon=icon, display_order=order)
        for candidate_name, class_level in candidates:
            catalog.create_candidate(db, candidate_name, category.id, class_level=class_level)
        created.append(category)
    return created

def populate_dummy_votes(db: Session, num_dummy_voters=200, rng=None):
    """Register dummy students and submit a random complete ballot for each."""
    rng = rng or random.Random()
    categories = catalog.list_categories(db)
    candidates = catalog.list_candidates(db)

    submitted = 0
    for i in range(num_dummy_voters):
        voter = resolve_student(db, f"DUMMY{i:05d}", f"Dummy Voter {i}")
        if voter.has_voted:
            continue
        selection = {
            category.id: rng.choice([c.id for c in candidates if c.category_id == category.id])
            for category in categories
        }
        submit_ballot(db, voter.student_id, selection)
        submitted += 1
    return submitted


def main(argv=None):
    from ballotbox.database import Base, SessionLocal, engine

    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO)

    # Ensure all models are registered before creating tables
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_catalog(db)
        print("Categories and candidates added successfully.")
        if argv:
            count = populate_dummy_votes(db, int(argv[0]))
            print(f"{count} dummy ballots submitted.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
