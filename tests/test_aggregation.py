"""Gradebook aggregation tests."""

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from quiz_portal.models import QuizSubmission
from quiz_portal.services import aggregation
from quiz_portal.services.aggregation import (
    aggregate_department,
    aggregate_paper,
    get_quiz_marks_for_paper,
    round_half_up,
)

from conftest import NOW, test_engine


def _record(quiz_id, student_id, score, total=10):
    with Session(test_engine) as s:
        s.add(QuizSubmission(quiz_id=quiz_id, student_id=student_id, answers=[], score=score, total_marks=total, submitted_at=NOW))
        s.commit()


class TestRoundHalfUp:
    @pytest.mark.parametrize("value, expected", [(4.5, 5), (4.49, 4), (5.0, 5), (0.5, 1), (2.5, 3)])
    def test_rounding(self, value, expected):
        assert round_half_up(value) == expected


class TestAggregatePaper:
    def test_average_across_quizzes(self, session, make_quiz, paper, alice):
        first, second = make_quiz(title="Q1"), make_quiz(title="Q2")
        _record(first, alice.id, 4)
        _record(second, alice.id, 6)

        assert get_quiz_marks_for_paper(session, paper.id) == {alice.id: 5}

    def test_half_is_rounded_up(self, session, make_quiz, paper, alice):
        first, second = make_quiz(title="Q1"), make_quiz(title="Q2")
        _record(first, alice.id, 4)
        _record(second, alice.id, 5)

        assert get_quiz_marks_for_paper(session, paper.id) == {alice.id: 5}

    def test_students_without_submissions_are_absent(self, session, make_quiz, paper, alice, bob):
        quiz_id = make_quiz()
        _record(quiz_id, alice.id, 2)

        marks = get_quiz_marks_for_paper(session, paper.id)
        assert alice.id in marks
        assert bob.id not in marks

    def test_only_attempted_quizzes_count(self, session, make_quiz, paper, alice, bob):
        first, second = make_quiz(title="Q1"), make_quiz(title="Q2")
        _record(first, alice.id, 8)
        _record(first, bob.id, 2)
        _record(second, bob.id, 6)

        assert get_quiz_marks_for_paper(session, paper.id) == {alice.id: 8, bob.id: 4}

    def test_paper_without_quizzes(self, session, paper):
        report = aggregate_paper(session, paper.id)
        assert report.marks == {}
        assert report.diagnostics == []

    @pytest.mark.parametrize("score, total", [(-2, 10), (12, 10)])
    def test_bad_scores_are_skipped_with_diagnostic(self, session, make_quiz, paper, alice, bob, score, total):
        quiz_id = make_quiz()
        _record(quiz_id, alice.id, score, total)
        _record(quiz_id, bob.id, 7)

        report = aggregate_paper(session, paper.id)

        assert report.marks == {bob.id: 7}
        assert len(report.diagnostics) == 1
        diag = report.diagnostics[0]
        assert diag.quiz_id == quiz_id
        assert diag.student_id == alice.id

    def test_unreadable_quiz_is_skipped(self, session, make_quiz, paper, alice, monkeypatch):
        good, bad = make_quiz(title="Good"), make_quiz(title="Bad")
        _record(good, alice.id, 6)
        _record(bad, alice.id, 0)

        real_load = aggregation._load_submissions

        def _load(session, quiz):
            if quiz.id == bad:
                raise OperationalError("SELECT", {}, Exception("disk I/O error"))
            return real_load(session, quiz)

        monkeypatch.setattr(aggregation, "_load_submissions", _load)

        report = aggregate_paper(session, paper.id)

        assert report.marks == {alice.id: 6}
        assert [d.quiz_id for d in report.diagnostics] == [bad]
        assert "could not load submissions" in report.diagnostics[0].reason


class TestAggregateDepartment:
    def test_every_department_paper(self, session, make_quiz, paper, second_paper, alice):
        ds_quiz = make_quiz()
        os_quiz = make_quiz(paper_id=second_paper.id)
        _record(ds_quiz, alice.id, 3)
        _record(os_quiz, alice.id, 9)

        report = aggregate_department(session, "Computer Science")

        assert report.papers == {paper.id: {alice.id: 3}, second_paper.id: {alice.id: 9}}
        assert report.diagnostics == []

    def test_failing_paper_is_skipped(self, session, make_quiz, paper, second_paper, alice, monkeypatch):
        """Given one paper cannot be aggregated, the other paper's marks are still reported."""
        _record(make_quiz(), alice.id, 3)
        _record(make_quiz(paper_id=second_paper.id), alice.id, 9)

        real_aggregate = aggregation.aggregate_paper
        broken_id = second_paper.id

        def _aggregate(session, paper_id):
            if paper_id == broken_id:
                raise OperationalError("SELECT", {}, Exception("database is locked"))
            return real_aggregate(session, paper_id)

        monkeypatch.setattr(aggregation, "aggregate_paper", _aggregate)

        report = aggregate_department(session, "Computer Science")

        assert report.papers == {paper.id: {alice.id: 3}}
        assert len(report.diagnostics) == 1
        assert report.diagnostics[0].paper_id == broken_id
        assert "could not aggregate paper" in report.diagnostics[0].reason

    def test_unknown_department(self, session, paper):
        report = aggregate_department(session, "Mechanical")
        assert report.papers == {}
