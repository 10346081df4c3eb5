"""Reference registry and demo data for local/offline mode."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from taskfirst.models import Comment, Document, Priority, Project, Status, SubTask, Task, User


TASK_TYPES = [
    "UI Design", "Backend Dev", "Frontend Dev", "UX Research",
    "Unit Testing", "QA Review", "Copywriting", "SEO Optimization",
    "Stakeholder Review", "Deployment",
]

INITIAL_DEPARTMENTS = [
    "Design",
    "Coding",
    "Testing",
    "Content",
    "Digital Marketing",
    "Leadership",
    "Delivery",
]

# 0, then half hours up to 5h, then whole hours 6..160.
HOUR_OPTIONS = [0] + [(i + 1) * 0.5 for i in range(10)] + [i + 6 for i in range(155)]

MOCK_PROJECTS: List[Project] = [
    Project(id="p1", name="Alpha Redesign"),
    Project(id="p2", name="Stripe Integration"),
    Project(id="p3", name="Mobile App V2"),
]

MOCK_USERS: List[User] = [
    User(id="u1", name="Alex Rivera", email="alex@taskfirst.com", avatar="https://picsum.photos/seed/u1/40", team="Design"),
    User(id="u2", name="Jordan Smith", email="jordan@taskfirst.com", avatar="https://picsum.photos/seed/u2/40", team="Coding"),
    User(id="u3", name="Casey Jones", email="casey@taskfirst.com", avatar="https://picsum.photos/seed/u3/40", team="Testing"),
    User(id="u4", name="Sam Taylor", email="sam@taskfirst.com", avatar="https://picsum.photos/seed/u4/40", team="Content"),
]


def _iso(ts: datetime) -> str:
    return ts.isoformat(timespec="milliseconds") + "Z"


def initial_tasks(now: Optional[datetime] = None) -> List[Task]:
    """Two demo tasks with deadlines relative to ``now`` (UTC)."""
    now = now or datetime.utcnow()
    stamp = _iso(now)
    return [
        Task(
            id="t1",
            project_id="p1",
            title="Brand Identity Overhaul",
            description="Refresh the logo and digital assets.",
            priority=Priority.HIGH,
            status=Status.IN_PROGRESS,
            assignee_id="u1",
            creator_id="u1",
            team="Design",
            task_type="UI Design",
            deadline=(now + timedelta(days=1)).date().isoformat(),
            estimated_hours=40,
            sub_tasks=[
                SubTask(
                    id="s1",
                    title="Logo Sketching",
                    status=Status.FINISHED,
                    priority=Priority.MEDIUM,
                    assignee_id="u1",
                    creator_id="u1",
                    team="Design",
                    task_type="UX Research",
                    deadline=(now - timedelta(days=1)).date().isoformat(),
                    estimated_hours=8,
                    handoff_comment="Initial sketches done.",
                    duration_hours=4,
                    duration_minutes=30,
                    document_history=[
                        Document(id="d1", name="Draft 1.png", url="#", type="image/png", uploaded_at=stamp),
                    ],
                )
            ],
            created_at=stamp,
            updated_at=stamp,
            duration_hours=12,
            duration_minutes=0,
        ),
        Task(
            id="t2",
            project_id="p2",
            title="API Integration - Payments",
            description="Integrate Stripe Connect.",
            priority=Priority.URGENT,
            status=Status.NOT_STARTED,
            assignee_id="u2",
            creator_id="u1",
            team="Coding",
            task_type="Backend Dev",
            deadline=(now + timedelta(days=2)).date().isoformat(),
            estimated_hours=120,
            created_at=stamp,
            updated_at=stamp,
            duration_hours=24,
            duration_minutes=0,
            comments=[
                Comment(
                    id="c1",
                    from_user_id="u2",
                    to_user_id="u1",
                    text="Does the API need to support multi-currency?",
                    timestamp=stamp,
                    is_clarification=True,
                )
            ],
        ),
    ]
