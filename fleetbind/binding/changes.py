"""
Key-based change sets between two bindings of the same collection.

Identity is the key alone: an entry whose key disappears is destroyed and an
entry whose key appears is created, even when the fields are identical. A
renamed key is therefore one destroy plus one create; nothing carries over.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Dict, List, Mapping


@dataclass
class ChangeSet:
    create: List[str] = field(default_factory=list)
    update: List[str] = field(default_factory=list)
    destroy: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.create or self.update or self.destroy)

    def to_dict(self) -> Dict[str, List[str]]:
        return asdict(self)

    def summary(self) -> str:
        return (
            f"{len(self.create)} to create, {len(self.update)} to update, "
            f"{len(self.destroy)} to destroy, {len(self.unchanged)} unchanged"
        )


def diff_bindings(previous: Mapping[str, Any], current: Mapping[str, Any]) -> ChangeSet:
    """Compare two `key -> binding` mappings by key."""
    changes = ChangeSet()
    for key in sorted(set(previous) | set(current)):
        if key not in previous:
            changes.create.append(key)
        elif key not in current:
            changes.destroy.append(key)
        elif _comparable(previous[key]) != _comparable(current[key]):
            changes.update.append(key)
        else:
            changes.unchanged.append(key)
    return changes


def _comparable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        data = asdict(value)
        # Handles are assigned by the materializer and never part of the declared state.
        data.pop("handle", None)
        return data
    return value
