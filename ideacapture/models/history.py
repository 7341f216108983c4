"""History entry data models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any


@dataclass
class TranscriptEntry:
    """A committed transcript stored in the history file."""
    id: str
    created_at: datetime  # Fixed at creation, never mutated
    text: str
    is_read: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON object."""
        return {
            "id": self.id,
            "createdAt": self.created_at.isoformat(),
            "text": self.text,
            "isRead": self.is_read,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptEntry":
        """Build an entry from a persisted JSON object.

        All four fields are required. Raises ValueError on a missing or
        mistyped field.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Entry must be an object, got {type(data).__name__}")

        for key, expected in (("id", str), ("createdAt", str), ("text", str), ("isRead", bool)):
            if key not in data:
                raise ValueError(f"Entry is missing field '{key}'")
            if not isinstance(data[key], expected):
                raise ValueError(f"Entry field '{key}' must be {expected.__name__}")

        if not data["id"]:
            raise ValueError("Entry id must not be empty")

        created_at = data["createdAt"]
        # Accept the "Z" UTC designator
        if created_at.endswith("Z"):
            created_at = created_at[:-1] + "+00:00"

        parsed = datetime.fromisoformat(created_at)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)

        return cls(
            id=data["id"],
            created_at=parsed,
            text=data["text"],
            is_read=data["isRead"],
        )
