import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError

from ballotbox import submission
from ballotbox.errors import AlreadyVotedError, PartialBallotError, StoreError, ValidationError
from ballotbox.flags import FlagStore
from ballotbox.models import Vote, Voter
from ballotbox.submission import BALLOT_COMPLETE, BALLOT_NONE, BALLOT_PARTIAL, ballot_status, submit_ballot
from ballotbox.tally import compute_tally
from ballotbox.voters import has_voted


def vote_rows(db):
    return db.scalar(select(func.count(Vote.id)))


def full_selection(election):
    return {election.head.id: election.alice.id, election.sports.id: election.dan.id}


def test_submit_writes_one_entry_per_category(db, election, register):
    register("S001")

    votes = submit_ballot(db, "S001", full_selection(election))

    assert len(votes) == 2
    assert {(v.category_id, v.candidate_id) for v in votes} == {
        (election.head.id, election.alice.id),
        (election.sports.id, election.dan.id),
    }
    assert all(v.student_id == "S001" for v in votes)
    assert has_voted(db, "S001") is True
    assert ballot_status(db, "S001") == BALLOT_COMPLETE


def test_submit_increments_chosen_candidates_and_voters_by_one(db, election, register):
    register("S001")
    register("S002")
    submit_ballot(db, "S001", {election.head.id: election.bob.id, election.sports.id: election.carol.id})
    before = compute_tally(db)

    submit_ballot(db, "S002", full_selection(election))
    after = compute_tally(db)

    assert after.total_voters == before.total_voters + 1
    assert after.count(election.alice.id) == before.count(election.alice.id) + 1
    assert after.count(election.dan.id) == before.count(election.dan.id) + 1
    assert after.count(election.bob.id) == before.count(election.bob.id)
    assert after.count(election.carol.id) == before.count(election.carol.id)


def test_second_submission_is_rejected_and_tally_unchanged(db, election, register):
    register("S001")
    submit_ballot(db, "S001", full_selection(election))
    tally = compute_tally(db)

    with pytest.raises(AlreadyVotedError):
        submit_ballot(db, "S001", {election.head.id: election.bob.id, election.sports.id: election.carol.id})

    assert compute_tally(db) == tally
    assert vote_rows(db) == 2


def test_incomplete_selection_is_rejected(db, election, register):
    register("S001")

    with pytest.raises(ValidationError) as excinfo:
        submit_ballot(db, "S001", {election.head.id: election.alice.id})

    assert "Sports Prefect" in excinfo.value.message
    assert vote_rows(db) == 0
    assert has_voted(db, "S001") is False


def test_candidate_filed_under_wrong_category_is_rejected(db, election, register):
    register("S001")

    with pytest.raises(ValidationError):
        submit_ballot(db, "S001", {election.head.id: election.carol.id, election.sports.id: election.dan.id})

    assert vote_rows(db) == 0


def test_unknown_category_is_rejected(db, election, register):
    register("S001")
    selection = full_selection(election)
    selection[9999] = election.alice.id

    with pytest.raises(ValidationError):
        submit_ballot(db, "S001", selection)

    assert vote_rows(db) == 0


def test_unregistered_student_cannot_vote(db, election):
    with pytest.raises(ValidationError):
        submit_ballot(db, "NOBODY", full_selection(election))


def test_success_sets_local_markers(db, election, register):
    register("S001")
    flags = FlagStore()

    submit_ballot(db, "S001", full_selection(election), flags=flags)

    assert flags.is_marked_voted("S001")
    assert flags.get("hasVoted") == "true"


def test_stale_local_marker_does_not_block_voting(db, election, register):
    register("S001")
    flags = FlagStore({"voted_S001": "true"})

    votes = submit_ballot(db, "S001", full_selection(election), flags=flags)

    assert len(votes) == 2


def test_failed_commit_leaves_nothing_behind(db, election, register, monkeypatch):
    register("S001")

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(StoreError):
        submit_ballot(db, "S001", full_selection(election))
    monkeypatch.undo()

    assert vote_rows(db) == 0
    assert has_voted(db, "S001") is False
    # Still re-triable as a whole
    assert len(submit_ballot(db, "S001", full_selection(election))) == 2


def test_conditional_claim_stops_a_racing_submission(db, election, register, monkeypatch):
    register("S001")
    # Another request marked the voter between our pre-check and our write
    db.execute(update(Voter).where(Voter.student_id == "S001").values(has_voted=True))
    db.commit()
    monkeypatch.setattr(submission, "_voted_flag", lambda db, student_id: False)

    with pytest.raises(AlreadyVotedError):
        submit_ballot(db, "S001", full_selection(election))

    assert vote_rows(db) == 0


def test_unique_key_rejects_duplicate_entries(db, election, register, monkeypatch):
    register("S001")
    db.add(Vote(candidate_id=election.alice.id, category_id=election.head.id, student_id="S001"))
    db.commit()
    monkeypatch.setattr(submission, "ballot_status", lambda db, student_id: BALLOT_NONE)

    with pytest.raises(AlreadyVotedError):
        submit_ballot(db, "S001", full_selection(election))

    assert vote_rows(db) == 1
    assert has_voted(db, "S001") is False


def test_half_cast_ballot_is_reported(db, election, register):
    register("S001")
    db.add(Vote(candidate_id=election.alice.id, category_id=election.head.id, student_id="S001"))
    db.commit()

    assert ballot_status(db, "S001") == BALLOT_PARTIAL
    with pytest.raises(PartialBallotError):
        submit_ballot(db, "S001", full_selection(election))
    assert vote_rows(db) == 1


def test_ballot_status_none_before_voting(db, election, register):
    register("S001")

    assert ballot_status(db, "S001") == BALLOT_NONE
