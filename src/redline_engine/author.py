"""
Author identity for tracked revisions.

This module provides RevisionAuthor, the immutable identity attached to
every tracked insertion and deletion.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RevisionAuthor:
    """Identity of the person who made a tracked change.

    Two authors are the same author when their ids match; the display name,
    email and color are presentation details and do not take part in
    equality or hashing.

    Attributes:
        id: Stable user identifier (e.g., "alice" or a directory GUID)
        name: Display name shown next to the change
        email: Optional email address
        color: Optional highlight color used when rendering the author's changes

    Example:
        >>> alice = RevisionAuthor(id="alice", name="Alice", color="#22c55e")
        >>> doc = Document(author=alice)
        >>> doc.enable_tracking()
        >>> doc.insert_text("Hello")
    """

    id: str
    name: str = field(compare=False)
    email: str | None = field(default=None, compare=False)
    color: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        """Validate author identity fields."""
        if not self.id:
            raise ValueError("Author id cannot be empty")
        if not self.name:
            raise ValueError("Author name cannot be empty")
        if self.email is not None and "@" not in self.email:
            raise ValueError(f"Invalid email format: {self.email}")

    @property
    def display_name(self) -> str:
        """Get the display name for the author."""
        return self.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dictionary, omitting unset optional fields."""
        data: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.email is not None:
            data["email"] = self.email
        if self.color is not None:
            data["color"] = self.color
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RevisionAuthor":
        """Build an author from a dictionary produced by to_dict().

        A missing id falls back to the name, and a missing name falls back to
        the id, so partially filled records from older content still load.
        """
        author_id = data.get("id") or data.get("name")
        name = data.get("name") or author_id
        return cls(
            id=str(author_id or ""),
            name=str(name or ""),
            email=data.get("email"),
            color=data.get("color"),
        )

    def __str__(self) -> str:
        """String representation showing name and email when present."""
        if self.email:
            return f"{self.name} <{self.email}>"
        return self.name


DEFAULT_AUTHOR = RevisionAuthor(id="anonymous", name="Anonymous", color="#3b82f6")
