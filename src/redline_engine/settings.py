"""
Session settings for a Document.

Settings can be built in code or loaded from a YAML or JSON file:

    author:
      id: alice
      name: Alice Smith
      email: alice@example.com
    tracking_enabled: true
    show_deletions: false
    view_mode: all_markup
    strict_invariants: false
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .author import DEFAULT_AUTHOR, RevisionAuthor
from .errors import ValidationError
from .visibility import ViewMode

_BOOL_KEYS = ("tracking_enabled", "show_deletions", "strict_invariants")


@dataclass
class Settings:
    """Initial state of a Document session.

    Attributes:
        author: Author attached to tracked edits
        tracking_enabled: Start with track changes on
        show_deletions: Show deleted text in the markup views
        view_mode: Initial view mode
        strict_invariants: Raise InvariantViolationError instead of repairing
            tree/ledger mismatches (for development and tests)
    """

    author: RevisionAuthor = DEFAULT_AUTHOR
    tracking_enabled: bool = False
    show_deletions: bool = False
    view_mode: ViewMode = ViewMode.ALL_MARKUP
    strict_invariants: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """Build settings from a plain dictionary.

        Raises:
            ValidationError: If a key is unknown or a value has the wrong type
        """
        if not isinstance(data, dict):
            raise ValidationError("Settings must be a dictionary/object")

        known = {"author", "view_mode", *_BOOL_KEYS}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                f"Unknown settings: {', '.join(unknown)}",
                errors=[f"Unknown key '{key}'" for key in unknown],
            )

        errors = []
        kwargs: dict[str, Any] = {}
        for key in _BOOL_KEYS:
            if key in data:
                if not isinstance(data[key], bool):
                    errors.append(f"'{key}' must be true or false")
                else:
                    kwargs[key] = data[key]

        if "view_mode" in data:
            try:
                kwargs["view_mode"] = ViewMode(data["view_mode"])
            except ValueError:
                modes = ", ".join(mode.value for mode in ViewMode)
                errors.append(f"'view_mode' must be one of: {modes}")

        if "author" in data:
            author = data["author"]
            try:
                if isinstance(author, str):
                    kwargs["author"] = RevisionAuthor(id=author, name=author)
                elif isinstance(author, dict):
                    kwargs["author"] = RevisionAuthor.from_dict(author)
                else:
                    errors.append("'author' must be a name or a mapping")
            except ValueError as e:
                errors.append(f"Invalid author: {e}")

        if errors:
            raise ValidationError("Invalid settings", errors=errors)
        return cls(**kwargs)


def load_settings(path: str | Path, format: str = "yaml") -> Settings:
    """Load settings from a YAML or JSON file.

    Args:
        path: Path to the settings file
        format: File format - "yaml" or "json" (default: "yaml")

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the file cannot be parsed or holds invalid settings
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    try:
        with open(file_path, encoding="utf-8") as f:
            if format == "yaml":
                data = yaml.safe_load(f)
            elif format == "json":
                data = json.load(f)
            else:
                raise ValidationError(f"Unsupported format: {format}")
    except yaml.YAMLError as e:
        raise ValidationError(f"Failed to parse YAML file: {e}") from e
    except json.JSONDecodeError as e:
        raise ValidationError(f"Failed to parse JSON file: {e}") from e

    return Settings.from_dict(data or {})
