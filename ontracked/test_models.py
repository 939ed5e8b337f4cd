import pytest
from datetime import datetime, timedelta, timezone
import uuid

from ontracked.models import (
    Goal, GoalStatus, GoalCreate, GoalResponse, ValidationError, clamp_percentage, sanitize_ids
)


@pytest.fixture
def goal():
    return Goal("Sky")


def full_goal(**overrides):
    now = datetime.now(timezone.utc)
    fields = dict(
        id=str(uuid.uuid4()),
        owner_id="Alice",
        parent_id="",
        children_ids=["a", "b", "a", "", None],
        title="Title",
        description="Desc",
        due_date="2025-10-01",
        status=GoalStatus.COMPLETED,
        latest_percentage=150,
        created_at=now,
        updated_at=now,
        version_number=5,
    )
    fields.update(overrides)
    return Goal.from_fields(**fields)


class TestHelpers:
    @pytest.mark.parametrize("value,expected", [(-10, 0), (150, 100), (0, 0), (100, 100), (42, 42)])
    def test_clamp_percentage(self, value, expected):
        assert clamp_percentage(value) == expected

    def test_sanitize_ids_drops_blanks_and_duplicates(self):
        assert sanitize_ids(["a", "b", "a", "", None]) == ["a", "b"]

    def test_sanitize_ids_trims_and_keeps_first_occurrence(self):
        assert sanitize_ids([" c ", "a", "c", "  "]) == ["c", "a"]

    def test_sanitize_ids_none(self):
        assert sanitize_ids(None) == []


class TestConstruction:
    def test_minimal_constructor_sets_defaults(self, goal):
        assert goal.id.strip()
        assert goal.owner_id == "Sky"
        assert goal.status == GoalStatus.ACTIVE
        assert goal.latest_percentage == 0
        assert goal.version_number == 1
        assert goal.children_ids == ()
        assert goal.parent_id is None
        assert goal.created_at == goal.updated_at

    @pytest.mark.parametrize("owner_id", ["", "   ", None])
    def test_minimal_constructor_rejects_blank_owner(self, owner_id):
        with pytest.raises(ValidationError):
            Goal(owner_id)

    def test_minimal_constructor_generates_distinct_ids(self):
        assert Goal("a").id != Goal("a").id

    def test_full_constructor_sanitizes_and_clamps(self):
        g = full_goal()
        assert g.owner_id == "Alice"
        assert g.parent_id is None
        assert g.status == GoalStatus.COMPLETED
        assert g.latest_percentage == 100
        assert g.version_number == 5
        assert g.children_ids == ("a", "b")
        assert g.due_date == "2025-10-01"

    def test_full_constructor_generates_blank_id(self):
        g = full_goal(id="  ")
        assert g.id.strip()

    def test_full_constructor_floors_version(self):
        assert full_goal(version_number=-3).version_number == 1

    def test_full_constructor_normalizes_blank_text(self):
        g = full_goal(title=" ", description="")
        assert g.title is None
        assert g.description is None

    def test_full_constructor_rejects_updated_before_created(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValidationError):
            full_goal(created_at=now, updated_at=now - timedelta(seconds=1))

    def test_full_constructor_rejects_bad_due_date(self):
        with pytest.raises(ValidationError) as exc_info:
            full_goal(due_date="10/01/2025")
        assert exc_info.value.field == "due_date"

    def test_full_constructor_rejects_missing_status(self):
        with pytest.raises(ValidationError):
            full_goal(status=None)

    def test_full_constructor_accepts_status_text(self):
        assert full_goal(status="PAUSED").status == GoalStatus.PAUSED

    @pytest.mark.parametrize("owner_id", ["", "   ", None])
    def test_full_constructor_rejects_blank_owner(self, owner_id):
        with pytest.raises(ValidationError):
            full_goal(owner_id=owner_id)

    def test_full_constructor_rejects_naive_timestamps(self):
        naive = datetime.now()
        with pytest.raises(ValidationError) as exc_info:
            full_goal(created_at=naive, updated_at=naive)
        assert exc_info.value.field == "created_at"

    def test_full_constructor_rejects_naive_updated_at(self):
        with pytest.raises(ValidationError) as exc_info:
            full_goal(updated_at=datetime.now())
        assert exc_info.value.field == "updated_at"


class TestMutators:
    @pytest.mark.parametrize("field,value", [
        ("id", "new-id"),
        ("owner_id", "Bob"),
        ("parent_id", "parent-1"),
        ("children_ids", ["x", "y"]),
        ("title", "New title"),
        ("description", "New description"),
        ("due_date", "2025-10-10"),
        ("status", GoalStatus.PAUSED),
        ("latest_percentage", 55),
    ])
    def test_setter_bumps_version_by_one(self, goal, field, value):
        version = goal.version_number
        updated_at = goal.updated_at
        setattr(goal, field, value)
        assert goal.version_number == version + 1
        assert goal.updated_at >= updated_at

    def test_due_date_valid_is_retrievable(self, goal):
        goal.due_date = "2025-10-10"
        assert goal.due_date == "2025-10-10"

    @pytest.mark.parametrize("value", ["not-a-date", "2025-13-01", "2025-02-30", "20251010"])
    def test_due_date_invalid_raises(self, goal, value):
        with pytest.raises(ValidationError):
            goal.due_date = value

    def test_due_date_blank_clears(self, goal):
        goal.due_date = "2025-10-10"
        goal.due_date = "  "
        assert goal.due_date is None

    def test_percentage_is_clamped_silently(self, goal):
        goal.latest_percentage = -10
        assert goal.latest_percentage == 0
        goal.latest_percentage = 150
        assert goal.latest_percentage == 100

    def test_blank_id_rejected(self, goal):
        with pytest.raises(ValidationError):
            goal.id = " "

    def test_blank_owner_rejected(self, goal):
        with pytest.raises(ValidationError):
            goal.owner_id = ""

    def test_invalid_status_rejected(self, goal):
        with pytest.raises(ValidationError):
            goal.status = "DONE"

    def test_blank_parent_normalizes(self, goal):
        goal.parent_id = "  "
        assert goal.parent_id is None

    def test_children_setter_sanitizes(self, goal):
        goal.children_ids = ["a", "b", "a", "", None]
        assert goal.children_ids == ("a", "b")

    def test_touch_updated_at_bumps_version(self, goal):
        goal.touch_updated_at()
        assert goal.version_number == 2

    def test_updated_at_setter_does_not_bump_version(self, goal):
        later = goal.created_at + timedelta(seconds=5)
        goal.updated_at = later
        assert goal.updated_at == later
        assert goal.version_number == 1

    def test_updated_at_before_created_rejected(self, goal):
        with pytest.raises(ValidationError):
            goal.updated_at = goal.created_at - timedelta(seconds=1)

    def test_created_at_setter_bumps_version(self, goal):
        earlier = goal.created_at - timedelta(days=1)
        goal.created_at = earlier
        assert goal.created_at == earlier
        assert goal.version_number == 2

    def test_created_at_after_updated_rejected(self, goal):
        created_at = goal.created_at
        with pytest.raises(ValidationError):
            goal.created_at = goal.updated_at + timedelta(days=1)
        assert goal.created_at == created_at
        assert goal.version_number == 1

    def test_version_setter_does_not_increment_again(self, goal):
        updated_at = goal.updated_at
        goal.version_number = 7
        assert goal.version_number == 7
        assert goal.updated_at >= updated_at

    def test_version_setter_floors_at_one(self, goal):
        goal.version_number = 0
        assert goal.version_number == 1

    def test_naive_created_at_rejected(self, goal):
        with pytest.raises(ValidationError):
            goal.created_at = datetime(2020, 1, 1)
        assert goal.version_number == 1

    def test_naive_updated_at_rejected(self, goal):
        with pytest.raises(ValidationError):
            goal.updated_at = datetime(2030, 1, 1)
        assert goal.updated_at.tzinfo is not None


class TestChildren:
    def test_add_child(self, goal):
        assert goal.add_child("c1") is True
        assert goal.children_ids == ("c1",)
        assert goal.version_number == 2

    def test_add_existing_child_is_noop(self, goal):
        goal.add_child("c1")
        version = goal.version_number
        assert goal.add_child("c1") is False
        assert goal.version_number == version

    def test_add_blank_child_rejected(self, goal):
        with pytest.raises(ValidationError):
            goal.add_child("  ")

    def test_remove_child(self, goal):
        goal.add_child("c1")
        assert goal.remove_child("c1") is True
        assert goal.children_ids == ()
        assert goal.version_number == 3

    @pytest.mark.parametrize("child_id", ["missing", None])
    def test_remove_absent_child_is_noop(self, goal, child_id):
        assert goal.remove_child(child_id) is False
        assert goal.version_number == 1

    def test_children_view_is_a_snapshot(self, goal):
        goal.add_child("c1")
        view = goal.children_ids
        goal.add_child("c2")
        assert view == ("c1",)
        with pytest.raises(AttributeError):
            view.append("c3")


class TestIdentity:
    def test_equality_is_by_id(self):
        a = Goal("one")
        b = Goal("two")
        b.id = a.id
        b.title = "different"
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_different_ids_not_equal(self):
        assert Goal("same") != Goal("same")

    def test_repr_mentions_status(self, goal):
        assert "ACTIVE" in repr(goal)


class TestApiModels:
    def test_goal_create_builds_fresh_goal(self):
        goal = GoalCreate(owner_id="owner", title="Run", latest_percentage=120).to_goal()
        assert goal.owner_id == "owner"
        assert goal.title == "Run"
        assert goal.latest_percentage == 100
        assert goal.version_number == 1

    def test_goal_response_mirrors_goal(self, goal):
        goal.add_child("c1")
        response = GoalResponse.from_goal(goal)
        assert response.id == goal.id
        assert response.children_ids == ["c1"]
        assert response.version_number == goal.version_number

    @pytest.mark.parametrize("field,value", [
        ("title", "Line one\nLine two"),
        ("description", "Carriage\rreturn"),
        ("owner_id", 'owner"1'),
        ("parent_id", 'parent"1'),
        ("id", 'goal"1'),
    ])
    def test_goal_create_rejects_unstorable_text(self, field, value):
        data = {"owner_id": "owner", field: value}
        with pytest.raises(ValidationError) as exc_info:
            GoalCreate(**data).to_goal()
        assert exc_info.value.field == field

    def test_goal_create_allows_quotes_in_title(self):
        goal = GoalCreate(owner_id="owner", title='Say "hi", then go').to_goal()
        assert goal.title == 'Say "hi", then go'
