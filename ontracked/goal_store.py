import logging
import re
from pathlib import Path
from typing import List, Optional, Union

from ontracked.models import Goal, GoalStatus

HEADER = "id,ownerId,parentId,title,description,dueDate,status,latestPercentage,createdAt,updatedAt,versionNumber"
COLUMN_COUNT = 11
INTEGER_PATTERN = re.compile(r"[+-]?\d+")


class MalformedRecordError(ValueError):
    """A stored row holds a value that cannot be parsed back into a goal."""


class StorageIOError(OSError):
    """The goals file could not be opened or written."""


def split_line(line: str) -> List[str]:
    """
    Split one stored row into its fields.

    Commas inside a double-quoted span are kept as text. Inside a quoted span
    a doubled quote yields one literal quote; every other quote character only
    toggles the quoted state and is dropped.
    """
    fields = []
    current = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    fields.append("".join(current))
    return fields


def _plain(value: Optional[str]) -> str:
    """Empty for None; commas become spaces instead of being quoted."""
    return "" if value is None else value.replace(",", " ")


def _quoted(value: Optional[str]) -> str:
    if value is None:
        return ""
    return '"' + value.replace('"', '""') + '"'


def _empty_to_none(value: str) -> Optional[str]:
    return value or None


class GoalStore:
    """
    Flat-file repository for goals.

    Every read parses the whole file again and every write appends to it.
    Nothing is cached between calls; the file path is the only state.
    """

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)

    def load_all(self) -> List[Goal]:
        """
        Load every goal stored in the file.

        Returns an empty list when the file is missing or unreadable. Rows with
        fewer than 11 fields are skipped. An unknown status or a non-numeric
        percentage raises MalformedRecordError and aborts the whole load.
        """
        try:
            with open(self.file_path, "r", encoding="utf-8", errors="replace") as f:
                lines = [line.rstrip("\n") for line in f]
        except OSError as e:
            logging.warning(f"Goals file {self.file_path} could not be read, treating as empty: {e}")
            return []

        goals = []
        # First line is the header
        for line_number, line in enumerate(lines[1:], start=2):
            parts = split_line(line)
            if len(parts) < COLUMN_COUNT:
                logging.debug(f"Skipping malformed row {line_number} in {self.file_path}")
                continue
            goals.append(self._parse_row(parts, line_number))
        return goals

    def retrieve_goal(self, goal_id: str) -> Optional[Goal]:
        """Return the goal with the given id, or None if no row matches."""
        for goal in self.load_all():
            if goal.id == goal_id:
                return goal
        return None

    def save_all(self, goals: List[Goal]) -> None:
        """
        Append goals to the file. The header is written only when the file is
        missing or empty; existing rows are never rewritten.
        """
        try:
            write_header = not self.file_path.exists() or self.file_path.stat().st_size == 0
            with open(self.file_path, "a", encoding="utf-8", newline="\n") as f:
                if write_header:
                    f.write(HEADER + "\n")
                for goal in goals:
                    f.write(self._format_row(goal) + "\n")
        except OSError as e:
            logging.error(f"Failed to write goals to {self.file_path}: {e}")
            raise StorageIOError(f"Failed to write goals file {self.file_path}") from e

    @staticmethod
    def _format_row(goal: Goal) -> str:
        return ",".join([
            _plain(goal.id),
            _plain(goal.owner_id),
            _plain(goal.parent_id),
            _quoted(goal.title),
            _quoted(goal.description),
            _plain(goal.due_date),
            goal.status.name,
            str(goal.latest_percentage),
            goal.created_at.isoformat(),
            goal.updated_at.isoformat(),
            str(goal.version_number),
        ])

    def _parse_row(self, parts: List[str], line_number: int) -> Goal:
        # Stored createdAt, updatedAt and versionNumber are not restored.
        goal = Goal(parts[1])
        goal.id = parts[0]
        goal.parent_id = _empty_to_none(parts[2])
        goal.title = _empty_to_none(parts[3])
        goal.description = _empty_to_none(parts[4])
        goal.due_date = _empty_to_none(parts[5])
        try:
            goal.status = GoalStatus[parts[6]]
        except KeyError:
            raise MalformedRecordError(
                f"Unknown status {parts[6]!r} on row {line_number} of {self.file_path}"
            )
        if not INTEGER_PATTERN.fullmatch(parts[7]):
            raise MalformedRecordError(
                f"Invalid percentage {parts[7]!r} on row {line_number} of {self.file_path}"
            )
        goal.latest_percentage = int(parts[7])
        return goal
