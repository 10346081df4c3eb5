"""Tests for the dashboard aggregation engine."""

import math
from datetime import datetime, timezone

import pytest

from helpers import make_sub, make_task
from taskfirst import metrics
from taskfirst.models import ALL_STATUSES, Status, User


FINISHED = Status.FINISHED
IN_PROGRESS = Status.IN_PROGRESS
NOT_STARTED = Status.NOT_STARTED


def sample_tasks():
    return [
        make_task(
            "t1",
            status=IN_PROGRESS,
            assignee_id="u1",
            team="Design",
            estimated_hours=40,
            duration_hours=12,
            sub_tasks=[
                make_sub("s1", status=FINISHED, assignee_id="u1", team="Design", estimated_hours=8,
                         duration_hours=4, duration_minutes=30, deadline="2024-05-10",
                         completed_at="2024-05-08T00:00:00Z"),
                make_sub("s2", status=Status.AWAITING_CLARITY, assignee_id="u2", team="Design"),
            ],
        ),
        make_task("t2", status=NOT_STARTED, assignee_id="u2", team="Coding", estimated_hours=120,
                  duration_hours=24),
        make_task("t3", status=FINISHED, assignee_id="u9", team="", estimated_hours=2, duration_hours=2,
                  deadline="2024-05-10", completed_at="2024-05-10T01:00:00Z"),
    ]


class TestRounding:
    """Half-up rounding helpers."""

    def test_round_int_rounds_ties_up(self):
        """2.5 should become 3, not the banker's 2."""
        assert metrics.round_int(2.5) == 3
        assert metrics.round_int(0.5) == 1
        assert metrics.round_int(2.49) == 2

    def test_round_half_up_one_decimal(self):
        """4h20m is 4.333... and shows as 4.3."""
        assert metrics.round_half_up(4 + 20 / 60, 1) == 4.3
        assert metrics.round_half_up(0.05, 1) == 0.1

    def test_to_fixed_ties_away_from_zero(self):
        """Exactly representable ties round up like Number.toFixed."""
        assert metrics.to_fixed(0.25, 1) == "0.3"
        assert metrics.to_fixed(2, 1) == "2.0"

    def test_to_fixed_non_finite(self):
        """Non-finite values render as text instead of raising."""
        assert metrics.to_fixed(math.inf) == "Infinity"
        assert metrics.to_fixed(math.nan) == "NaN"


class TestFlatten:
    """Tests for flatten_items."""

    def test_each_task_followed_by_its_subtasks(self):
        """Order is t1, t1's subtasks, t2, ..."""
        ids = [i.id for i in metrics.flatten_items(sample_tasks())]
        assert ids == ["t1", "s1", "s2", "t2", "t3"]

    def test_size_is_tasks_plus_subtasks(self):
        """No subtask is dropped or counted twice."""
        tasks = sample_tasks()
        items = metrics.flatten_items(tasks)
        assert len(items) == len(tasks) + sum(len(t.sub_tasks) for t in tasks)

    def test_empty(self):
        """Empty in, empty out."""
        assert metrics.flatten_items([]) == []

    def test_does_not_mutate_input(self):
        """The task list is left untouched."""
        tasks = sample_tasks()
        before = [t.to_dict() for t in tasks]
        metrics.flatten_items(tasks)
        assert [t.to_dict() for t in tasks] == before


class TestStatusCounts:
    """Tests for stat cards and filtering."""

    def test_stat_card_counts(self):
        """Counts span tasks and subtasks."""
        counts = metrics.stat_card_counts(sample_tasks())
        assert counts.to_dict() == {
            "total": 5,
            "not_started": 1,
            "in_progress": 1,
            "awaiting_clarity": 1,
            "finished": 2,
        }

    def test_status_partition(self):
        """Every item lands in exactly one status."""
        items = metrics.flatten_items(sample_tasks())
        assert sum(metrics.count_by_status(items, s) for s in ALL_STATUSES) == len(items)

    def test_empty_list(self):
        """An empty workspace shows zeros everywhere."""
        assert metrics.stat_card_counts([]).to_dict() == {
            "total": 0, "not_started": 0, "in_progress": 0, "awaiting_clarity": 0, "finished": 0,
        }

    def test_finished_subtask_under_open_parent(self):
        """The subtask counts; the filter returns its parent."""
        task = make_task("t1", status=IN_PROGRESS, sub_tasks=[make_sub("s1", status=FINISHED)])
        items = metrics.flatten_items([task])
        assert metrics.count_by_status(items, FINISHED) == 1
        filtered = metrics.filter_top_level([task], FINISHED)
        assert [t.id for t in filtered] == ["t1"]

    def test_filter_matches_task_or_any_subtask(self):
        """Exactly the tasks with a matching status on themselves or a child."""
        tasks = sample_tasks()
        assert [t.id for t in metrics.filter_top_level(tasks, "Finished")] == ["t1", "t3"]
        assert [t.id for t in metrics.filter_top_level(tasks, "Awaiting Clarity")] == ["t1"]
        assert [t.id for t in metrics.filter_top_level(tasks, "Not Started")] == ["t2"]

    def test_no_filter_returns_everything(self):
        """None and the TOTAL sentinel both mean no filter."""
        tasks = sample_tasks()
        assert metrics.filter_top_level(tasks, None) == tasks
        assert metrics.filter_top_level(tasks, metrics.ALL_FILTER) == tasks

    def test_toggle_filter(self):
        """Same card clears, another card replaces."""
        assert metrics.toggle_filter(None, "Finished") == "Finished"
        assert metrics.toggle_filter("Finished", "Finished") is None
        assert metrics.toggle_filter("Finished", "In Progress") == "In Progress"


class TestCompletionTiming:
    """Tests for the Early / On Time / Late classifier."""

    def test_early_and_late_scenario(self):
        """Two days early is Early; one hour past the deadline is Late."""
        items = [
            make_task("a", status=FINISHED, deadline="2024-05-10", completed_at="2024-05-08T00:00:00Z"),
            make_task("b", status=FINISHED, deadline="2024-05-10", completed_at="2024-05-10T01:00:00Z"),
        ]
        assert metrics.completion_timing(items).to_dict() == {"early": 1, "on_time": 0, "late": 1}

    def test_exactly_one_day_early_is_on_time(self):
        """The Early threshold is strict."""
        item = make_task(status=FINISHED, deadline="2024-05-10", completed_at="2024-05-09T00:00:00Z")
        assert metrics.classify_completion(item) == metrics.ON_TIME

    def test_completed_at_deadline_is_on_time(self):
        """A zero difference is neither early nor late."""
        item = make_task(status=FINISHED, deadline="2024-05-10T00:00:00Z", completed_at="2024-05-10T00:00:00.000Z")
        assert metrics.classify_completion(item) == metrics.ON_TIME

    def test_missing_facts_are_on_time(self):
        """No deadline or no completion stamp counts as On Time."""
        no_deadline = make_task(status=FINISHED, completed_at="2024-05-10T00:00:00Z")
        no_stamp = make_task(status=FINISHED, deadline="2024-05-10")
        assert metrics.classify_completion(no_deadline) == metrics.ON_TIME
        assert metrics.classify_completion(no_stamp) == metrics.ON_TIME

    def test_unparseable_deadline_is_on_time(self):
        """Garbage timestamps behave like missing ones."""
        item = make_task(status=FINISHED, deadline="not a date", completed_at="2024-05-10T00:00:00Z")
        assert metrics.classify_completion(item) == metrics.ON_TIME

    def test_only_finished_items_are_bucketed(self):
        """The buckets partition the Finished items."""
        items = metrics.flatten_items(sample_tasks())
        timing = metrics.completion_timing(items)
        assert timing.total == metrics.count_by_status(items, FINISHED)

    def test_chart_rows(self):
        """Chart rows carry label, value and colour."""
        rows = metrics.CompletionTimingBuckets(early=1, on_time=2, late=3).chart_rows()
        assert [(r["name"], r["value"]) for r in rows] == [("Early", 1), ("On Time", 2), ("Late", 3)]
        assert rows[2]["color"] == metrics.TIMING_COLORS[metrics.LATE]


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_date_only_is_utc_midnight(self):
        """A bare date means midnight UTC."""
        assert metrics.parse_timestamp("2024-05-10") == datetime(2024, 5, 10, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        """A timestamp without offset is read as UTC."""
        assert metrics.parse_timestamp("2024-05-10T08:30:00") == datetime(2024, 5, 10, 8, 30, tzinfo=timezone.utc)

    def test_z_suffix(self):
        """The Z suffix is accepted."""
        assert metrics.parse_timestamp("2024-05-10T08:30:00.000Z").hour == 8

    def test_empty_and_garbage(self):
        """Empty or unparseable input gives None."""
        assert metrics.parse_timestamp(None) is None
        assert metrics.parse_timestamp("") is None
        assert metrics.parse_timestamp("soon-ish") is None

    def test_non_iso_text_falls_back_to_pandas(self):
        """Free-form dates are parsed by pandas and read as UTC."""
        parsed = metrics.parse_timestamp("10 May 2024 08:30")
        assert parsed == datetime(2024, 5, 10, 8, 30, tzinfo=timezone.utc)


class TestDepartmentRows:
    """Tests for department_rows."""

    def test_counts_and_hours(self):
        """Only Finished items add actual hours; every item adds its estimate."""
        rows = {r.team: r for r in metrics.department_rows(metrics.flatten_items(sample_tasks()))}
        design = rows["Design"]
        assert design.task_count == 3
        assert design.actual_hours == 4.5
        assert design.estimated_hours == 48
        assert rows["Coding"].actual_hours == 0

    def test_missing_team_is_unassigned(self):
        """An empty team string groups under Unassigned."""
        rows = metrics.department_rows([make_task(team="")])
        assert rows[0].team == metrics.UNASSIGNED_TEAM

    def test_sorted_by_count_with_stable_ties(self):
        """Busiest team first; ties keep first-seen order."""
        items = [
            make_task("a", team="Coding"),
            make_task("b", team="Testing"),
            make_task("c", team="Design"),
            make_task("d", team="Design"),
        ]
        assert [r.team for r in metrics.department_rows(items)] == ["Design", "Coding", "Testing"]

    def test_actual_hours_rounded_to_one_decimal(self):
        """4h20m shows as 4.3."""
        rows = metrics.department_rows([make_task(status=FINISHED, team="Design", duration_hours=4, duration_minutes=20)])
        assert rows[0].actual_hours == 4.3

    def test_minutes_are_not_normalised(self):
        """90 minutes on top of 1h is 2.5h."""
        rows = metrics.department_rows([make_task(status=FINISHED, team="X", duration_hours=1, duration_minutes=90)])
        assert rows[0].actual_hours == 2.5

    def test_missing_estimate_is_zero(self):
        """No estimate never turns into NaN."""
        rows = metrics.department_rows([make_task(team="X", estimated_hours=None)])
        assert rows[0].estimated_hours == 0


class TestAssigneeRows:
    """Tests for assignee_rows."""

    def test_running_efficiency(self, users):
        """(10 est, 10 actual) then (20, 10) gives (100 + 200) / 2 = 150%."""
        items = [
            make_task("a", status=FINISHED, assignee_id="u1", estimated_hours=10, duration_hours=10),
            make_task("b", status=FINISHED, assignee_id="u1", estimated_hours=20, duration_hours=10),
        ]
        row = metrics.assignee_rows(items, users)[0]
        assert row.name == "Alex Rivera"
        assert row.completed == 2
        assert row.efficiency_percent == 150
        assert row.total_hours == 20

    def test_running_efficiency_is_recency_biased(self, users):
        """A third ratio of 100 averages with 150, not with the plain mean."""
        items = [
            make_task("a", status=FINISHED, assignee_id="u1", estimated_hours=10, duration_hours=10),
            make_task("b", status=FINISHED, assignee_id="u1", estimated_hours=20, duration_hours=10),
            make_task("c", status=FINISHED, assignee_id="u1", estimated_hours=10, duration_hours=10),
        ]
        assert metrics.assignee_rows(items, users)[0].efficiency_percent == 125

    def test_items_without_estimate_or_effort_skip_efficiency(self, users):
        """Zero actual or zero estimate leaves efficiency untouched."""
        items = [
            make_task("a", status=FINISHED, assignee_id="u1", estimated_hours=10, duration_hours=0),
            make_task("b", status=FINISHED, assignee_id="u1", estimated_hours=0, duration_hours=3),
        ]
        row = metrics.assignee_rows(items, users)[0]
        assert row.efficiency_percent == 0
        assert row.total_hours == 3

    def test_ongoing_and_unknown(self, users):
        """Open items count as ongoing; unknown ids resolve to Unknown."""
        items = [make_task("a", assignee_id="ghost"), make_task("b", assignee_id="u2", status=IN_PROGRESS)]
        rows = {r.name: r for r in metrics.assignee_rows(items, users)}
        assert rows[metrics.UNKNOWN_ASSIGNEE].ongoing == 1
        assert rows["Jordan Smith"].ongoing == 1
        assert rows["Jordan Smith"].completed == 0

    def test_sorted_by_completed(self, users):
        """Most completions first, stable on ties."""
        items = [
            make_task("a", assignee_id="u2"),
            make_task("b", assignee_id="u1", status=FINISHED),
            make_task("c", assignee_id="ghost"),
        ]
        names = [r.name for r in metrics.assignee_rows(items, users)]
        assert names == ["Alex Rivera", "Jordan Smith", "Unknown"]

    def test_total_hours_one_decimal(self, users):
        """Hours include minutes and are rounded to one decimal."""
        items = [make_task(status=FINISHED, assignee_id="u1", duration_hours=1, duration_minutes=20)]
        assert metrics.assignee_rows(items, users)[0].total_hours == 1.3


class TestSummary:
    """Tests for summary_metrics and the load factor."""

    def test_empty_workspace(self, users):
        """No items: 0% precision, no rows, zero load."""
        snapshot = metrics.build_dashboard([], users)
        assert snapshot.summary.completion_precision_percent == 0
        assert snapshot.summary.aggregate_output_hours == 0
        assert snapshot.summary.workforce_velocity_percent == 0
        assert snapshot.summary.task_load_factor == 0.0
        assert snapshot.departments == []
        assert snapshot.assignees == []

    def test_completion_precision(self, users):
        """(early + on time) over finished, rounded half-up."""
        items = [
            make_task("a", status=FINISHED, deadline="2024-05-10", completed_at="2024-05-01T00:00:00Z"),
            make_task("b", status=FINISHED),
            make_task("c", status=FINISHED, deadline="2024-05-10", completed_at="2024-05-11T00:00:00Z"),
        ]
        assert metrics.summary_metrics(items, users).completion_precision_percent == 67

    def test_aggregate_output_excludes_minutes(self, users):
        """Sum of whole duration hours, half-up: 1.5 + 1 = 2.5 -> 3."""
        items = [make_task("a", duration_hours=1.5, duration_minutes=50), make_task("b", duration_hours=1)]
        assert metrics.summary_metrics(items, users).aggregate_output_hours == 3

    def test_velocity_is_first_assignee_efficiency(self, users):
        """Velocity mirrors the top assignee row."""
        items = [
            make_task("a", status=FINISHED, assignee_id="u1", estimated_hours=10, duration_hours=10),
            make_task("b", status=FINISHED, assignee_id="u1", estimated_hours=20, duration_hours=10),
        ]
        assert metrics.summary_metrics(items, users).workforce_velocity_percent == 150

    def test_load_factor_one_decimal(self):
        """1 item over 4 users is 0.25, shown as 0.3."""
        four = [User(id=f"u{i}", name=str(i)) for i in range(4)]
        assert metrics.summary_metrics([make_task()], four).task_load_factor == 0.3

    def test_load_factor_without_users(self):
        """No users: infinite load, or undefined with no items either."""
        assert math.isinf(metrics.task_load_factor(3, 0))
        assert math.isnan(metrics.task_load_factor(0, 0))
        assert metrics.format_load_factor(metrics.task_load_factor(3, 0)) == "∞"
        assert metrics.format_load_factor(metrics.task_load_factor(0, 0)) == "–"
        assert metrics.format_load_factor(1.5) == "1.5"

    def test_cards(self, users):
        """Cards are label/value pairs ready for display."""
        cards = dict(metrics.build_dashboard(sample_tasks(), users).summary.cards())
        assert cards["Completion Precision"] == "50%"
        assert cards["Task Load Factor"] == "2.5"

    def test_idempotent(self, users):
        """Recomputing the same snapshot gives the same answer."""
        tasks = sample_tasks()
        assert metrics.build_dashboard(tasks, users).to_dict() == metrics.build_dashboard(tasks, users).to_dict()


class TestArchive:
    """Tests for archive_items and subtask_progress."""

    def test_tasks_before_subtasks(self):
        """Finished tasks come first, then finished subtasks."""
        tasks = [
            make_task("t1", sub_tasks=[make_sub("s1", status=FINISHED)]),
            make_task("t2", status=FINISHED),
        ]
        assert [(p, i.id) for p, i in metrics.archive_items(tasks)] == [(None, "t2"), ("t1", "s1")]

    def test_search_title_or_comment(self):
        """Search is case-insensitive over title and handoff comment."""
        tasks = [
            make_task("t1", title="Logo", status=FINISHED),
            make_task("t2", title="API", status=FINISHED, handoff_comment="Shipped the LOGO pack"),
            make_task("t3", title="Copy", status=FINISHED),
        ]
        assert [i.id for _, i in metrics.archive_items(tasks, "logo")] == ["t1", "t2"]

    def test_duplicate_subtask_ids_keep_their_parent(self):
        """Subtasks sharing an id across tasks are told apart by parent."""
        tasks = [
            make_task("t1", sub_tasks=[make_sub("s-1", status=FINISHED)]),
            make_task("t2", sub_tasks=[make_sub("s-1", status=FINISHED, title="Other")]),
        ]
        entries = metrics.archive_items(tasks)
        assert [(p, i.id, i.title) for p, i in entries] == [("t1", "s-1", "Sub s-1"), ("t2", "s-1", "Other")]

    def test_subtask_progress(self):
        """(done, total, percent)."""
        task = make_task(sub_tasks=[make_sub("a", status=FINISHED), make_sub("b")])
        assert metrics.subtask_progress(task) == (1, 2, 50.0)
        assert metrics.subtask_progress(make_task()) == (0, 0, 0)
