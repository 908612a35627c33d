import pytest
from sqlalchemy.exc import IntegrityError

from classes.unit_of_work import run_atomically
from models import User


def _add(email):
    def operation(session):
        user = User(email=email, full_name=email.split("@")[0], role="student")
        session.add(user)
        return user
    return operation


def test_commits_every_operation_together(app):
    results = run_atomically([_add("a@example.com"), _add("b@example.com")])

    assert [u.email for u in results] == ["a@example.com", "b@example.com"]
    assert User.query.count() == 2


def test_failure_rolls_back_earlier_operations(app):
    def explode(session):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        run_atomically([_add("a@example.com"), explode])

    assert User.query.count() == 0


def test_constraint_violation_rolls_back(app):
    run_atomically([_add("dup@example.com")])
    with pytest.raises(IntegrityError):
        run_atomically([_add("new@example.com"), _add("dup@example.com")])

    assert sorted(u.email for u in User.query.all()) == ["dup@example.com"]
