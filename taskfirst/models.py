"""Domain model for tasks, subtasks and the reference entities they point at.

Stored documents use camelCase keys (``assigneeId``, ``subTasks``); the
Python side uses snake_case attributes. ``from_dict`` accepts either form so
rows coming from the SQL store, Firebase documents and JSON payloads all load
through the same path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar, Union


class Status(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    FINISHED = "Finished"
    AWAITING_CLARITY = "Awaiting Clarity"

    def __str__(self) -> str:
        return self.value


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"

    def __str__(self) -> str:
        return self.value


ALL_STATUSES: List[Status] = list(Status)

E = TypeVar("E", bound=Enum)


def _enum_or_raw(enum_cls: Type[E], value: Any, default: E) -> Union[E, str]:
    if value is None or value == "":
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        # Keep values we do not know about instead of rewriting history.
        return str(value)


def _number(value: Any) -> Union[int, float]:
    """Coerce a stored numeric field; anything missing or malformed is 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value if value == value else 0  # NaN
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return 0
    if parsed != parsed:
        return 0
    return int(parsed) if parsed.is_integer() else parsed


def _optional_number(value: Any) -> Optional[Union[int, float]]:
    if value is None or value == "":
        return None
    return _number(value)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value)
    return s or None


def _pick(data: Dict[str, Any], camel: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    snake = to_snake(camel)
    if snake in data:
        return data[snake]
    return default


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name).lower()


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass
class Rating:
    stars: int = 0
    comment: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Rating"]:
        if not data:
            return None
        return cls(stars=int(_number(data.get("stars"))), comment=str(data.get("comment") or ""))

    def to_dict(self) -> Dict[str, Any]:
        return {"stars": self.stars, "comment": self.comment}


@dataclass
class Comment:
    id: str
    from_user_id: str = ""
    text: str = ""
    timestamp: str = ""
    is_clarification: bool = False
    to_user_id: Optional[str] = None
    reply_text: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comment":
        return cls(
            id=str(_pick(data, "id", "")),
            from_user_id=str(_pick(data, "fromUserId", "") or ""),
            text=str(_pick(data, "text", "") or ""),
            timestamp=str(_pick(data, "timestamp", "") or ""),
            is_clarification=bool(_pick(data, "isClarification", False)),
            to_user_id=_optional_str(_pick(data, "toUserId")),
            reply_text=_optional_str(_pick(data, "replyText")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "fromUserId": self.from_user_id,
            "text": self.text,
            "timestamp": self.timestamp,
            "isClarification": self.is_clarification,
        }
        if self.to_user_id is not None:
            out["toUserId"] = self.to_user_id
        if self.reply_text is not None:
            out["replyText"] = self.reply_text
        return out


@dataclass
class Document:
    id: str
    name: str = ""
    url: str = ""
    type: str = ""
    uploaded_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        return cls(
            id=str(_pick(data, "id", "")),
            name=str(_pick(data, "name", "") or ""),
            url=str(_pick(data, "url", "") or ""),
            type=str(_pick(data, "type", "") or ""),
            uploaded_at=str(_pick(data, "uploadedAt", "") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "url": self.url, "type": self.type, "uploadedAt": self.uploaded_at}


@dataclass
class User:
    id: str
    name: str
    email: str = ""
    avatar: str = ""
    team: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name") or ""),
            email=str(data.get("email") or ""),
            avatar=str(data.get("avatar") or ""),
            team=str(data.get("team") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email, "avatar": self.avatar, "team": self.team}


@dataclass
class Project:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(id=str(data.get("id", "")), name=str(data.get("name") or ""))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass
class WorkItem:
    """Fields shared by tasks and subtasks; the unit every metric counts."""

    id: str
    title: str = ""
    status: Union[Status, str] = Status.NOT_STARTED
    priority: Union[Priority, str] = Priority.MEDIUM
    assignee_id: str = ""
    creator_id: str = ""
    team: str = ""
    task_type: str = ""
    deadline: Optional[str] = None
    completed_at: Optional[str] = None
    handoff_comment: Optional[str] = None
    output_link: Optional[str] = None
    description: Optional[str] = None
    duration_hours: Union[int, float] = 0
    duration_minutes: Union[int, float] = 0
    estimated_hours: Optional[Union[int, float]] = None
    rating: Optional[Rating] = None
    comments: List[Comment] = field(default_factory=list)
    document_history: List[Document] = field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.status == Status.FINISHED

    @property
    def actual_hours(self) -> float:
        # Minutes are never folded into hours: 90 minutes is 1.5h on top.
        return (self.duration_hours or 0) + (self.duration_minutes or 0) / 60

    @classmethod
    def _common_kwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": str(_pick(data, "id", "") or ""),
            "title": str(_pick(data, "title", "") or ""),
            "status": _enum_or_raw(Status, _pick(data, "status"), Status.NOT_STARTED),
            "priority": _enum_or_raw(Priority, _pick(data, "priority"), Priority.MEDIUM),
            "assignee_id": str(_pick(data, "assigneeId", "") or ""),
            "creator_id": str(_pick(data, "creatorId", "") or ""),
            "team": str(_pick(data, "team", "") or ""),
            "task_type": str(_pick(data, "taskType", "") or ""),
            "deadline": _optional_str(_pick(data, "deadline")),
            "completed_at": _optional_str(_pick(data, "completedAt")),
            "handoff_comment": _optional_str(_pick(data, "handoffComment")),
            "output_link": _optional_str(_pick(data, "outputLink")),
            "description": _optional_str(_pick(data, "description")),
            "duration_hours": _number(_pick(data, "durationHours")),
            "duration_minutes": _number(_pick(data, "durationMinutes")),
            "estimated_hours": _optional_number(_pick(data, "estimatedHours")),
            "rating": Rating.from_dict(_pick(data, "rating")),
            "comments": [Comment.from_dict(c) for c in (_pick(data, "comments") or [])],
            "document_history": [Document.from_dict(d) for d in (_pick(data, "documentHistory") or [])],
        }

    def _common_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "status": _enum_value(self.status),
            "priority": _enum_value(self.priority),
            "assigneeId": self.assignee_id,
            "creatorId": self.creator_id,
            "team": self.team,
            "taskType": self.task_type,
            "durationHours": self.duration_hours,
            "durationMinutes": self.duration_minutes,
            "comments": [c.to_dict() for c in self.comments],
            "documentHistory": [d.to_dict() for d in self.document_history],
        }
        optional = {
            "deadline": self.deadline,
            "completedAt": self.completed_at,
            "handoffComment": self.handoff_comment,
            "outputLink": self.output_link,
            "description": self.description,
            "estimatedHours": self.estimated_hours,
            "rating": self.rating.to_dict() if self.rating else None,
        }
        out.update({k: v for k, v in optional.items() if v is not None})
        return out

    def with_updates(self, updates: Dict[str, Any]):
        """Return a copy with ``updates`` applied (camelCase or snake_case keys)."""
        return replace(self, **normalise_updates(type(self), updates))


@dataclass
class SubTask(WorkItem):
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubTask":
        return cls(**cls._common_kwargs(data))

    def to_dict(self) -> Dict[str, Any]:
        return self._common_dict()


@dataclass
class Task(WorkItem):
    project_id: str = ""
    sub_tasks: List[SubTask] = field(default_factory=list)
    documents: List[Document] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        kwargs = cls._common_kwargs(data)
        kwargs["description"] = str(_pick(data, "description", "") or "")
        return cls(
            **kwargs,
            project_id=str(_pick(data, "projectId", "") or ""),
            sub_tasks=[s if isinstance(s, SubTask) else SubTask.from_dict(s) for s in (_pick(data, "subTasks") or [])],
            documents=[Document.from_dict(d) for d in (_pick(data, "documents") or [])],
            created_at=_optional_str(_pick(data, "createdAt")),
            updated_at=_optional_str(_pick(data, "updatedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = self._common_dict()
        out["description"] = self.description or ""
        out["projectId"] = self.project_id
        out["subTasks"] = [s.to_dict() for s in self.sub_tasks]
        out["documents"] = [d.to_dict() for d in self.documents]
        if self.created_at is not None:
            out["createdAt"] = self.created_at
        if self.updated_at is not None:
            out["updatedAt"] = self.updated_at
        return out

    def sub_task(self, sub_id: str) -> Optional[SubTask]:
        for sub in self.sub_tasks:
            if sub.id == sub_id:
                return sub
        return None


_NESTED_LOADERS = {
    "sub_tasks": SubTask.from_dict,
    "comments": Comment.from_dict,
    "document_history": Document.from_dict,
    "documents": Document.from_dict,
}


def normalise_updates(cls: type, updates: Dict[str, Any]) -> Dict[str, Any]:
    """Map a partial update onto dataclass field names, loading nested dicts.

    Keys that are not fields of ``cls`` are dropped (a subtask has no
    ``projectId``).
    """
    names = {f.name for f in fields(cls)}
    out: Dict[str, Any] = {}
    for key, value in (updates or {}).items():
        name = key if key in names else to_snake(key)
        if name not in names:
            continue
        if name == "status":
            value = _enum_or_raw(Status, value, Status.NOT_STARTED)
        elif name == "priority":
            value = _enum_or_raw(Priority, value, Priority.MEDIUM)
        elif name in ("duration_hours", "duration_minutes"):
            value = _number(value)
        elif name == "estimated_hours":
            value = _optional_number(value)
        elif name == "rating" and isinstance(value, dict):
            value = Rating.from_dict(value)
        elif name in _NESTED_LOADERS and value is not None:
            loader = _NESTED_LOADERS[name]
            value = [v if not isinstance(v, dict) else loader(v) for v in value]
        out[name] = value
    return out
