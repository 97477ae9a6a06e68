import random

from ballotbox.catalog import list_candidates, list_categories
from ballotbox.seed import DEFAULT_CATALOG, populate_dummy_votes, seed_catalog
from ballotbox.tally import compute_tally


def test_seed_catalog_is_idempotent(db):
    created = seed_catalog(db)

    assert len(created) == len(DEFAULT_CATALOG)
    assert [c.display_order for c in list_categories(db)] == [1, 2, 3, 4]
    assert len(list_candidates(db)) == 8
    assert seed_catalog(db) == []
    assert len(list_categories(db)) == 4


def test_dummy_votes_are_complete_ballots(db):
    seed_catalog(db)

    assert populate_dummy_votes(db, 10, rng=random.Random(7)) == 10

    tally = compute_tally(db)
    assert tally.total_voters == 10
    assert tally.row_count == 40
    # Running again skips students who already voted
    assert populate_dummy_votes(db, 10, rng=random.Random(7)) == 0
