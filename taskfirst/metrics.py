"""Aggregation and metrics engine behind the stat cards, insights and archive.

Everything here is a pure function of a task snapshot: tasks are flattened
together with their subtasks into one collection of work items, which is then
counted, classified and grouped. Nothing is cached between calls, so a new
snapshot simply means calling the functions again.

Rounding follows the dashboard's display rules (half-up, never bankers'
rounding), so numbers shown here match the figures users already know.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from taskfirst.models import Status, Task, User, WorkItem


ALL_FILTER = "TOTAL"
EARLY = "Early"
ON_TIME = "On Time"
LATE = "Late"
UNASSIGNED_TEAM = "Unassigned"
UNKNOWN_ASSIGNEE = "Unknown"

# A finish more than a day ahead of the deadline counts as early.
EARLY_THRESHOLD = timedelta(days=1)

TIMING_COLORS = {EARLY: "#10b981", ON_TIME: "#6366f1", LATE: "#ef4444"}

StatusFilter = Optional[Union[Status, str]]


# ---------------------------------------------------------------------------
# Rounding helpers
# ---------------------------------------------------------------------------

def round_half_up(value: float, digits: int = 0) -> float:
    """Round like ``Math.round(value * 10**digits) / 10**digits``."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    return int(math.floor(value + 0.5))


def to_fixed(value: float, digits: int = 1) -> str:
    """Fixed-point text with ties rounded away from zero (``0.25`` -> ``"0.3"``)."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def _num(value: Any) -> float:
    if not value or isinstance(value, bool):
        return 0
    return value if value == value else 0


# ---------------------------------------------------------------------------
# Flattening and status counts
# ---------------------------------------------------------------------------

def flatten_items(tasks: Iterable[Task]) -> List[WorkItem]:
    """Each task followed by its own subtasks, in original order."""
    items: List[WorkItem] = []
    for task in tasks:
        items.append(task)
        items.extend(task.sub_tasks)
    return items


def count_by_status(items: Iterable[WorkItem], status: Union[Status, str]) -> int:
    return sum(1 for item in items if item.status == status)


@dataclass(frozen=True)
class StatCardCounts:
    total: int
    not_started: int
    in_progress: int
    awaiting_clarity: int
    finished: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def stat_card_counts(tasks: Sequence[Task]) -> StatCardCounts:
    items = flatten_items(tasks)
    return StatCardCounts(
        total=len(items),
        not_started=count_by_status(items, Status.NOT_STARTED),
        in_progress=count_by_status(items, Status.IN_PROGRESS),
        awaiting_clarity=count_by_status(items, Status.AWAITING_CLARITY),
        finished=count_by_status(items, Status.FINISHED),
    )


def _is_no_filter(status: StatusFilter) -> bool:
    return status is None or status == "" or status == ALL_FILTER


def filter_top_level(tasks: Sequence[Task], status: StatusFilter = None) -> List[Task]:
    """Tasks matching ``status`` themselves or through any of their subtasks.

    Parents are always returned instead of bare subtasks so a matching item
    is shown in context.
    """
    if _is_no_filter(status):
        return list(tasks)
    return [
        t for t in tasks
        if t.status == status or any(s.status == status for s in t.sub_tasks)
    ]


def toggle_filter(active: StatusFilter, selected: StatusFilter) -> StatusFilter:
    """Clicking the active card clears the filter; any other card replaces it."""
    if active is not None and active == selected:
        return None
    return selected


# ---------------------------------------------------------------------------
# Completion timing
# ---------------------------------------------------------------------------

def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse an ISO date or timestamp to an aware UTC datetime.

    Date-only values mean midnight UTC and naive timestamps are read as UTC.
    Returns None for empty or unparseable input.
    """
    if not raw:
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        text = str(raw).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            ts = pd.to_datetime(str(raw), errors="coerce", utc=True)
            if ts is None or pd.isna(ts):
                return None
            dt = ts.to_pydatetime()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def classify_completion(item: WorkItem) -> str:
    """Early / On Time / Late for a finished item."""
    due = parse_timestamp(item.deadline)
    done = parse_timestamp(item.completed_at)
    if due is None or done is None:
        return ON_TIME
    diff = due - done
    if diff > EARLY_THRESHOLD:
        return EARLY
    if diff < timedelta(0):
        return LATE
    return ON_TIME


@dataclass(frozen=True)
class CompletionTimingBuckets:
    early: int
    on_time: int
    late: int

    @property
    def total(self) -> int:
        return self.early + self.on_time + self.late

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    def chart_rows(self) -> List[Dict[str, Any]]:
        return [
            {"name": EARLY, "value": self.early, "color": TIMING_COLORS[EARLY]},
            {"name": ON_TIME, "value": self.on_time, "color": TIMING_COLORS[ON_TIME]},
            {"name": LATE, "value": self.late, "color": TIMING_COLORS[LATE]},
        ]


def completion_timing(items: Iterable[WorkItem]) -> CompletionTimingBuckets:
    counts = {EARLY: 0, ON_TIME: 0, LATE: 0}
    for item in items:
        if item.status != Status.FINISHED:
            continue
        counts[classify_completion(item)] += 1
    return CompletionTimingBuckets(early=counts[EARLY], on_time=counts[ON_TIME], late=counts[LATE])


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

def _actual_hours(item: WorkItem) -> float:
    return _num(item.duration_hours) + _num(item.duration_minutes) / 60


@dataclass(frozen=True)
class DepartmentRow:
    team: str
    task_count: int
    actual_hours: float
    estimated_hours: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def department_rows(items: Iterable[WorkItem]) -> List[DepartmentRow]:
    """Item count, actual and estimated hours per team, busiest team first."""
    stats: Dict[str, Dict[str, float]] = {}
    for item in items:
        team = item.team or UNASSIGNED_TEAM
        bucket = stats.setdefault(team, {"tasks": 0, "hours": 0.0, "est": 0})
        bucket["tasks"] += 1
        if item.status == Status.FINISHED:
            bucket["hours"] += _actual_hours(item)
        bucket["est"] += _num(item.estimated_hours)

    rows = [
        DepartmentRow(
            team=team,
            task_count=int(data["tasks"]),
            actual_hours=round_half_up(data["hours"], 1),
            estimated_hours=data["est"],
        )
        for team, data in stats.items()
    ]
    # sorted() is stable: ties keep first-seen order.
    return sorted(rows, key=lambda r: -r.task_count)


@dataclass(frozen=True)
class AssigneeRow:
    name: str
    completed: int
    ongoing: int
    efficiency_percent: int
    total_hours: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def user_names(users: Iterable[User]) -> Dict[str, str]:
    names: Dict[str, str] = {}
    for user in users:
        names.setdefault(user.id, user.name)
    return names


def assignee_rows(items: Iterable[WorkItem], users: Iterable[User]) -> List[AssigneeRow]:
    """Per-assignee completed/ongoing counts, hours and running efficiency.

    Efficiency is a running average where each new ratio is averaged with the
    previous value, so later items weigh more than earlier ones.
    """
    names = user_names(users)
    stats: Dict[str, Dict[str, float]] = {}
    for item in items:
        name = names.get(item.assignee_id) or UNKNOWN_ASSIGNEE
        bucket = stats.setdefault(name, {"completed": 0, "ongoing": 0, "efficiency": 0.0, "hours": 0.0})
        if item.status == Status.FINISHED:
            bucket["completed"] += 1
            actual = _actual_hours(item)
            est = _num(item.estimated_hours)
            bucket["hours"] += actual
            if actual > 0 and est > 0:
                ratio = (est / actual) * 100
                if bucket["efficiency"] == 0:
                    bucket["efficiency"] = ratio
                else:
                    bucket["efficiency"] = (bucket["efficiency"] + ratio) / 2
        else:
            bucket["ongoing"] += 1

    rows = [
        AssigneeRow(
            name=name,
            completed=int(data["completed"]),
            ongoing=int(data["ongoing"]),
            efficiency_percent=round_int(data["efficiency"]),
            total_hours=round_half_up(data["hours"], 1),
        )
        for name, data in stats.items()
    ]
    return sorted(rows, key=lambda r: -r.completed)


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def task_load_factor(item_count: int, user_count: int) -> float:
    """Items per registered user, one decimal.

    An empty user registry is not guarded: the result is ``inf`` (or ``nan``
    when there are no items either), never an exception.
    """
    if user_count == 0:
        return math.nan if item_count == 0 else math.inf
    return float(to_fixed(item_count / user_count, 1))


def format_load_factor(value: float) -> str:
    if math.isnan(value):
        return "–"
    if math.isinf(value):
        return "∞"
    return to_fixed(value, 1)


@dataclass(frozen=True)
class SummaryMetrics:
    completion_precision_percent: int
    aggregate_output_hours: int
    workforce_velocity_percent: int
    task_load_factor: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def cards(self) -> List[Tuple[str, str]]:
        return [
            ("Completion Precision", f"{self.completion_precision_percent}%"),
            ("Aggregate Output (Hrs)", str(self.aggregate_output_hours)),
            ("Workforce Velocity", f"{self.workforce_velocity_percent}%"),
            ("Task Load Factor", format_load_factor(self.task_load_factor)),
        ]


def summary_metrics(
    items: Sequence[WorkItem],
    users: Sequence[User],
    *,
    timing: Optional[CompletionTimingBuckets] = None,
    assignees: Optional[List[AssigneeRow]] = None,
) -> SummaryMetrics:
    timing = timing if timing is not None else completion_timing(items)
    assignees = assignees if assignees is not None else assignee_rows(items, users)

    finished = count_by_status(items, Status.FINISHED)
    precision = round_int((timing.early + timing.on_time) / (finished or 1) * 100)
    # Whole hours only; minutes are left out of the headline figure.
    output_hours = round_int(sum(_num(item.duration_hours) for item in items))
    velocity = assignees[0].efficiency_percent if assignees else 0

    return SummaryMetrics(
        completion_precision_percent=precision,
        aggregate_output_hours=output_hours,
        workforce_velocity_percent=velocity or 0,
        task_load_factor=task_load_factor(len(items), len(users)),
    )


@dataclass(frozen=True)
class DashboardSnapshot:
    counts: StatCardCounts
    timing: CompletionTimingBuckets
    departments: List[DepartmentRow]
    assignees: List[AssigneeRow]
    summary: SummaryMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counts": self.counts.to_dict(),
            "timing": self.timing.to_dict(),
            "departments": [r.to_dict() for r in self.departments],
            "assignees": [r.to_dict() for r in self.assignees],
            "summary": self.summary.to_dict(),
        }


def build_dashboard(tasks: Sequence[Task], users: Sequence[User]) -> DashboardSnapshot:
    """Every aggregate the insights page shows, from one snapshot."""
    items = flatten_items(tasks)
    timing = completion_timing(items)
    assignees = assignee_rows(items, users)
    return DashboardSnapshot(
        counts=stat_card_counts(tasks),
        timing=timing,
        departments=department_rows(items),
        assignees=assignees,
        summary=summary_metrics(items, users, timing=timing, assignees=assignees),
    )


# ---------------------------------------------------------------------------
# Archive and card helpers
# ---------------------------------------------------------------------------

def archive_items(tasks: Sequence[Task], search: str = "") -> List[Tuple[Optional[str], WorkItem]]:
    """Finished tasks, then finished subtasks, matching title or handoff comment.

    Each entry is ``(parent_id, item)``; ``parent_id`` is None for tasks.
    Subtask ids are only unique within their parent, so callers address a
    subtask through the pair.
    """
    needle = (search or "").lower()
    pool: List[Tuple[Optional[str], WorkItem]] = [(None, task) for task in tasks]
    for task in tasks:
        pool.extend((task.id, sub) for sub in task.sub_tasks)
    return [
        (parent_id, item) for parent_id, item in pool
        if item.status == Status.FINISHED
        and (needle in item.title.lower() or needle in (item.handoff_comment or "").lower())
    ]


def subtask_progress(task: Task) -> Tuple[int, int, float]:
    """(finished subtasks, total subtasks, percent)."""
    total = len(task.sub_tasks)
    done = count_by_status(task.sub_tasks, Status.FINISHED)
    pct = (done / total) * 100 if total else 0
    return done, total, pct
