"""Builders for tasks and subtasks used across the suites."""

from taskfirst.models import SubTask, Task


def make_sub(id="s", **kw) -> SubTask:
    kw.setdefault("title", f"Sub {id}")
    return SubTask(id=id, **kw)


def make_task(id="t", **kw) -> Task:
    kw.setdefault("title", f"Task {id}")
    return Task(id=id, **kw)
