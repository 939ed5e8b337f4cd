from datetime import date, datetime, timezone
from typing import Optional, List, Iterable, Union
from sqlmodel import SQLModel, Field
from enum import Enum
import re
import uuid

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

####################
#  Domain Errors   #
####################

class ValidationError(ValueError):
    """Raised when a goal field violates one of the aggregate's invariants."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field} {message}")
        self.field = field

####################
#  Domain Models   #
####################

class GoalStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


def clamp_percentage(percentage: int) -> int:
    """Force a percentage into [0, 100] without raising."""
    if percentage < 0:
        return 0
    if percentage > 100:
        return 100
    return percentage


def sanitize_ids(ids: Optional[Iterable[Optional[str]]]) -> List[str]:
    """
    Trim every id, drop null and blank entries and remove duplicates.
    The first occurrence of an id keeps its position.
    """
    if not ids:
        return []
    unique = dict.fromkeys(i.strip() for i in ids if i is not None and i.strip())
    return list(unique)


def _generate_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_non_blank(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(field, "must be non-blank")
    return value


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def _validate_due_date(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    candidate = value.strip()
    if not ISO_DATE_PATTERN.match(candidate):
        raise ValidationError("due_date", "must be ISO yyyy-MM-dd")
    try:
        date.fromisoformat(candidate)
    except ValueError:
        raise ValidationError("due_date", "must be ISO yyyy-MM-dd")
    return candidate


def _require_status(value: Union[GoalStatus, str, None]) -> GoalStatus:
    if value is None:
        raise ValidationError("status", "must not be None")
    try:
        return GoalStatus(value)
    except ValueError:
        raise ValidationError("status", f"is not a valid status: {value!r}")


def _require_timestamp(value: Optional[datetime], field: str) -> datetime:
    if value is None:
        raise ValidationError(field, "must not be None")
    if value.tzinfo is None:
        raise ValidationError(field, "must be timezone-aware")
    return value


def _require_not_before(candidate: datetime, floor: datetime, field: str) -> datetime:
    if candidate < floor:
        raise ValidationError(field, "cannot be before created_at")
    return candidate


class Goal:
    """
    Goal aggregate.

    - id and owner_id are non-blank.
    - status is never None.
    - latest_percentage is clamped to [0, 100].
    - due_date is an ISO yyyy-MM-dd string when present.
    - children_ids has no blanks and no duplicates.
    - every mutation refreshes updated_at and increments version_number.

    Two goals are equal when their ids are equal, whatever their other fields.
    """

    def __init__(self, owner_id: str):
        self._id = _generate_id()
        self._owner_id = _require_non_blank(owner_id, "owner_id")
        self._parent_id: Optional[str] = None
        self._children_ids: List[str] = []
        self._title: Optional[str] = None
        self._description: Optional[str] = None
        self._due_date: Optional[str] = None
        self._status = GoalStatus.ACTIVE
        self._latest_percentage = 0
        self._created_at = _now()
        self._updated_at = self._created_at
        self._version_number = 1

    @classmethod
    def from_fields(
        cls,
        id: Optional[str],
        owner_id: str,
        parent_id: Optional[str],
        children_ids: Optional[Iterable[Optional[str]]],
        title: Optional[str],
        description: Optional[str],
        due_date: Optional[str],
        status: Union[GoalStatus, str],
        latest_percentage: int,
        created_at: datetime,
        updated_at: datetime,
        version_number: int,
    ) -> "Goal":
        """Build a goal from every field, normalizing and validating each one."""
        goal = cls(owner_id)
        goal._id = _blank_to_none(id) or _generate_id()
        goal._parent_id = _blank_to_none(parent_id)
        goal._children_ids = sanitize_ids(children_ids)
        goal._title = _blank_to_none(title)
        goal._description = _blank_to_none(description)
        goal._due_date = _validate_due_date(due_date)
        goal._status = _require_status(status)
        goal._latest_percentage = clamp_percentage(latest_percentage)
        goal._created_at = _require_timestamp(created_at, "created_at")
        goal._updated_at = _require_not_before(
            _require_timestamp(updated_at, "updated_at"), goal._created_at, "updated_at"
        )
        goal._version_number = max(1, version_number)
        return goal

    # Identity

    @property
    def id(self) -> str:
        return self._id

    @id.setter
    def id(self, value: str) -> None:
        self._id = _require_non_blank(value, "id")
        self._bump_version()

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @owner_id.setter
    def owner_id(self, value: str) -> None:
        self._owner_id = _require_non_blank(value, "owner_id")
        self._bump_version()

    # Tree

    @property
    def parent_id(self) -> Optional[str]:
        return self._parent_id

    @parent_id.setter
    def parent_id(self, value: Optional[str]) -> None:
        self._parent_id = _blank_to_none(value)
        self._bump_version()

    @property
    def children_ids(self) -> tuple:
        return tuple(self._children_ids)

    @children_ids.setter
    def children_ids(self, value: Optional[Iterable[Optional[str]]]) -> None:
        self._children_ids = sanitize_ids(value)
        self._bump_version()

    def add_child(self, child_id: str) -> bool:
        """Append child_id unless it is already present. Returns whether it was added."""
        child_id = _require_non_blank(child_id, "child_id")
        if child_id in self._children_ids:
            return False
        self._children_ids.append(child_id)
        self._bump_version()
        return True

    def remove_child(self, child_id: Optional[str]) -> bool:
        """Remove child_id if present. Returns whether it was removed."""
        if child_id is None or child_id not in self._children_ids:
            return False
        self._children_ids.remove(child_id)
        self._bump_version()
        return True

    # Content

    @property
    def title(self) -> Optional[str]:
        return self._title

    @title.setter
    def title(self, value: Optional[str]) -> None:
        self._title = _blank_to_none(value)
        self._bump_version()

    @property
    def description(self) -> Optional[str]:
        return self._description

    @description.setter
    def description(self, value: Optional[str]) -> None:
        self._description = _blank_to_none(value)
        self._bump_version()

    @property
    def due_date(self) -> Optional[str]:
        return self._due_date

    @due_date.setter
    def due_date(self, value: Optional[str]) -> None:
        self._due_date = _validate_due_date(value)
        self._bump_version()

    @property
    def status(self) -> GoalStatus:
        return self._status

    @status.setter
    def status(self, value: Union[GoalStatus, str]) -> None:
        self._status = _require_status(value)
        self._bump_version()

    @property
    def latest_percentage(self) -> int:
        return self._latest_percentage

    @latest_percentage.setter
    def latest_percentage(self, value: int) -> None:
        self._latest_percentage = clamp_percentage(value)
        self._bump_version()

    # Timestamps & version

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @created_at.setter
    def created_at(self, value: datetime) -> None:
        value = _require_timestamp(value, "created_at")
        _require_not_before(self._updated_at, value, "updated_at")
        self._created_at = value
        self._bump_version()

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @updated_at.setter
    def updated_at(self, value: datetime) -> None:
        # Only the ordering is checked; this is the timestamp operation itself.
        self._updated_at = _require_not_before(
            _require_timestamp(value, "updated_at"), self._created_at, "updated_at"
        )

    @property
    def version_number(self) -> int:
        return self._version_number

    @version_number.setter
    def version_number(self, value: int) -> None:
        self._version_number = max(1, value)
        self._refresh_updated_at()

    def touch_updated_at(self) -> None:
        self._bump_version()

    def _refresh_updated_at(self) -> None:
        self._updated_at = max(_now(), self._updated_at)

    def _bump_version(self) -> None:
        self._refresh_updated_at()
        self._version_number = max(1, self._version_number + 1)

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, Goal):
            return NotImplemented
        return self._id == other._id

    def __hash__(self):
        return hash(self._id)

    def __repr__(self):
        return (
            f"Goal(id={self._id!r}, title={self._title!r}, status={self._status.value}, "
            f"latest_percentage={self._latest_percentage}, due_date={self._due_date!r})"
        )

####################
#   API Models     #
####################

class GoalCreate(SQLModel):
    id: Optional[str] = None
    owner_id: str = Field(min_length=1, max_length=200)
    parent_id: Optional[str] = None
    children_ids: List[str] = Field(default_factory=list)
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    due_date: Optional[str] = None  # ISO yyyy-MM-dd
    status: GoalStatus = Field(default=GoalStatus.ACTIVE)
    latest_percentage: int = 0  # clamped by the aggregate, not rejected

    def check_storable(self) -> None:
        """
        Reject text the goals file cannot hold on one row: line breaks anywhere,
        and double quotes in the unquoted identifier columns.
        """
        text_fields = {
            "id": self.id,
            "owner_id": self.owner_id,
            "parent_id": self.parent_id,
            "title": self.title,
            "description": self.description,
            "due_date": self.due_date,
        }
        for field, value in text_fields.items():
            if value is None:
                continue
            if "\n" in value or "\r" in value:
                raise ValidationError(field, "must not contain line breaks")
            if field in ("id", "owner_id", "parent_id", "due_date") and '"' in value:
                raise ValidationError(field, "must not contain double quotes")

    def to_goal(self) -> Goal:
        self.check_storable()
        now = _now()
        return Goal.from_fields(
            id=self.id,
            owner_id=self.owner_id,
            parent_id=self.parent_id,
            children_ids=self.children_ids,
            title=self.title,
            description=self.description,
            due_date=self.due_date,
            status=self.status,
            latest_percentage=self.latest_percentage,
            created_at=now,
            updated_at=now,
            version_number=1,
        )

class GoalResponse(SQLModel):
    id: str
    owner_id: str
    parent_id: Optional[str] = None
    children_ids: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    status: GoalStatus
    latest_percentage: int
    created_at: datetime
    updated_at: datetime
    version_number: int

    @classmethod
    def from_goal(cls, goal: Goal) -> "GoalResponse":
        return cls(
            id=goal.id,
            owner_id=goal.owner_id,
            parent_id=goal.parent_id,
            children_ids=list(goal.children_ids),
            title=goal.title,
            description=goal.description,
            due_date=goal.due_date,
            status=goal.status,
            latest_percentage=goal.latest_percentage,
            created_at=goal.created_at,
            updated_at=goal.updated_at,
            version_number=goal.version_number,
        )
