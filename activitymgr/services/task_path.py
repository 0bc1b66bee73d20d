"""
Positional task paths.

A task's position in the forest is encoded as a string of fixed-width
hexadecimal segments, one per ancestor level:

    ROOT       full path "01"      (path "",     number 1)
    +- T1      full path "0101"    (path "01",   number 1)
    |  +- T11  full path "010101"  (path "0101", number 1)
    +- T2      full path "0102"    (path "01",   number 2)

Children's `path` equals their parent's full path, so "descendants of X" is a
prefix match on X's full path and "children of X" an exact match.
Ordering tasks by the full path *string* yields depth-first tree order
(T1, T11, T2); a numeric reading of the same digits would not.
"""

from pydantic import BaseModel, field_validator

SEGMENT_WIDTH = 2
MAX_NUMBER = 16 ** SEGMENT_WIDTH - 1
_HEX_DIGITS = set("0123456789abcdef")


class TaskPath(BaseModel):
    """Immutable, validated positional path ("" is the root level)."""

    model_config = {"frozen": True}

    value: str = ""

    def __init__(self, value: str = "", **kwargs):
        super().__init__(value=value, **kwargs)

    @field_validator("value")
    @classmethod
    def _check_value(cls, value: str) -> str:
        value = value.lower()
        if len(value) % SEGMENT_WIDTH != 0:
            raise ValueError(f"length {len(value)} is not a multiple of {SEGMENT_WIDTH}")
        if not set(value) <= _HEX_DIGITS:
            raise ValueError("only hexadecimal digits are allowed")
        return value

    @staticmethod
    def encode_number(number: int) -> str:
        """Render a sibling number as one path segment."""
        if number < 0 or number > MAX_NUMBER:
            raise ValueError(f"task number {number} out of range [0, {MAX_NUMBER}]")
        return format(number, f"0{SEGMENT_WIDTH}x")

    @classmethod
    def full_path_of(cls, path: str, number: int) -> str:
        return (path or "") + cls.encode_number(number)

    def __str__(self) -> str:
        return self.value

    def __len__(self) -> int:
        return len(self.value)

    @property
    def is_root(self) -> bool:
        return self.value == ""

    @property
    def depth(self) -> int:
        return len(self.value) // SEGMENT_WIDTH

    @property
    def segments(self) -> list[int]:
        return [
            int(self.value[i:i + SEGMENT_WIDTH], 16)
            for i in range(0, len(self.value), SEGMENT_WIDTH)
        ]

    @property
    def parent(self) -> "TaskPath":
        """Path of the enclosing level (the parent task's own `path`)."""
        if self.is_root:
            raise ValueError("the root level has no parent")
        return TaskPath(self.value[:-SEGMENT_WIDTH])

    @property
    def number(self) -> int:
        """Sibling number encoded by the last segment."""
        if self.is_root:
            raise ValueError("the root level has no number")
        return int(self.value[-SEGMENT_WIDTH:], 16)

    def child(self, number: int) -> "TaskPath":
        return TaskPath(self.value + self.encode_number(number))

    def is_prefix_of(self, other: "TaskPath | str") -> bool:
        """True when `other` lies at or below this path."""
        return str(other).startswith(self.value)

    def is_ancestor_of(self, other: "TaskPath | str") -> bool:
        other = str(other)
        return len(other) > len(self.value) and other.startswith(self.value)

    def rebase(self, old_prefix_length: int, new_prefix: "TaskPath | str") -> "TaskPath":
        """Replace the first `old_prefix_length` characters with `new_prefix`."""
        if old_prefix_length > len(self.value):
            raise ValueError(
                f"prefix length {old_prefix_length} exceeds path '{self.value}'"
            )
        return TaskPath(str(new_prefix) + self.value[old_prefix_length:])
