"""Tests for the reorder algorithm."""

import pytest

from talentflow_core.errors import NotFoundError
from talentflow_core.models.job import Job, JobStatus
from talentflow_core.ordering.reorder import (
    clamp_order,
    dense_ranking_violations,
    next_order,
    reorder,
)


def _make_jobs(n: int) -> list:
    return [
        Job(id=i, title=f"Job {i}", slug=f"job-{i}", order=i)
        for i in range(1, n + 1)
    ]


def _orders(jobs) -> dict:
    return {j.id: j.order for j in jobs}


class TestReorder:
    def test_move_up_shifts_jobs_in_between_down(self):
        """5 jobs; the job at 3 moves to 1."""
        jobs = _make_jobs(5)
        result = reorder(jobs, 3, 1)

        assert _orders(result) == {1: 2, 2: 3, 3: 1, 4: 4, 5: 5}

    def test_move_down_shifts_jobs_in_between_up(self):
        jobs = _make_jobs(5)
        result = reorder(jobs, 2, 4)

        assert _orders(result) == {1: 1, 2: 4, 3: 2, 4: 3, 5: 5}

    def test_same_position_returns_input_unchanged(self):
        jobs = _make_jobs(4)
        assert reorder(jobs, 3, 3) is jobs

    def test_target_is_clamped(self):
        jobs = _make_jobs(4)
        assert _orders(reorder(jobs, 2, 99))[2] == 4
        assert _orders(reorder(jobs, 3, -5))[3] == 1

    def test_clamped_to_current_position_is_noop(self):
        jobs = _make_jobs(3)
        assert reorder(jobs, 3, 10) is jobs

    def test_unknown_id_raises_not_found(self):
        with pytest.raises(NotFoundError):
            reorder(_make_jobs(3), 42, 1)

    def test_input_is_not_mutated(self):
        jobs = _make_jobs(5)
        reorder(jobs, 5, 1)
        assert _orders(jobs) == {1: 1, 2: 2, 3: 3, 4: 4, 5: 5}

    def test_works_on_unsorted_input(self):
        jobs = list(reversed(_make_jobs(4)))
        result = reorder(jobs, 1, 4)
        assert _orders(result) == {1: 4, 2: 1, 3: 2, 4: 3}

    def test_every_move_keeps_ranking_dense(self):
        """Any single move over any dense ranking yields exactly 1..N."""
        for n in range(1, 7):
            jobs = _make_jobs(n)
            for job in jobs:
                for to_order in range(-1, n + 3):
                    result = reorder(jobs, job.id, to_order)
                    assert sorted(j.order for j in result) == list(range(1, n + 1))
                    assert not any(dense_ranking_violations(result).values())

    def test_untouched_jobs_keep_relative_order(self):
        jobs = _make_jobs(6)
        result = reorder(jobs, 2, 5)
        others = sorted((j for j in result if j.id != 2), key=lambda j: j.order)
        assert [j.id for j in others] == [1, 3, 4, 5, 6]


class TestRankingHelpers:
    def test_clamp_order(self):
        assert clamp_order(0, 5) == 1
        assert clamp_order(3, 5) == 3
        assert clamp_order(8, 5) == 5
        assert clamp_order(2, 0) == 1

    def test_next_order(self):
        assert next_order([]) == 1
        assert next_order(_make_jobs(3)) == 4

    def test_violations_report_gaps_and_duplicates(self):
        jobs = _make_jobs(4)
        jobs[3] = jobs[3].model_copy(update={"order": 2})
        assert dense_ranking_violations(jobs) == {
            "missing": [4],
            "duplicate": [2],
            "out_of_range": [],
        }

    def test_archived_jobs_are_left_out_unless_asked(self):
        jobs = _make_jobs(3)
        jobs[1] = jobs[1].model_copy(update={"status": JobStatus.ARCHIVED})

        assert dense_ranking_violations(jobs) == {
            "missing": [2],
            "duplicate": [],
            "out_of_range": [3],
        }
        assert not any(dense_ranking_violations(jobs, include_archived=True).values())
