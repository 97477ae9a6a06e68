import pytest

from ballotbox.errors import NotFoundError, ValidationError
from ballotbox.flags import FlagStore
from ballotbox.voters import get_voter, has_voted, resolve_student


def test_first_login_registers_the_student(db):
    voter = resolve_student(db, " S001 ", " Ama Mensah ")

    assert voter.student_id == "S001"
    assert voter.name == "Ama Mensah"
    assert voter.class_level == "Unknown"
    assert voter.has_voted is False


def test_returning_student_gets_the_same_row(db):
    first = resolve_student(db, "S001", "Ama Mensah")
    again = resolve_student(db, "S001", "Ama Mensah")

    assert again.id == first.id


def test_name_mismatch_is_rejected(db):
    resolve_student(db, "S001", "Ama Mensah")

    with pytest.raises(ValidationError):
        resolve_student(db, "S001", "Kofi Boateng")


@pytest.mark.parametrize("student_id, name", [("", "Ama"), ("S001", "  "), (None, None)])
def test_blank_fields_are_rejected(db, student_id, name):
    with pytest.raises(ValidationError):
        resolve_student(db, student_id, name)
    assert get_voter(db, "S001") is None


def test_has_voted_requires_a_registered_student(db):
    with pytest.raises(NotFoundError):
        has_voted(db, "S404")


def test_flag_store_clears_only_voted_markers():
    flags = FlagStore({"votingUser": "{}", "hasVoted": "true"})
    flags.mark_voted("S001")
    flags.mark_voted("S002")
    flags.unmark_voted("S002")

    assert flags.is_marked_voted("S001")
    assert not flags.is_marked_voted("S002")
    assert flags.clear_voted_markers() == 2
    assert flags.keys() == ["votingUser"]
