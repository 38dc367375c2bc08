"""Virtual folder view over a flat key listing.

Folders are not stored anywhere: they are the distinct first path segments of
keys that sit deeper than ``current_path``. Everything here is pure and works
on any objects exposing ``.key`` (StorageObject) or dicts with a "key".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple


def _key_of(obj: Any) -> str:
    if isinstance(obj, dict):
        return str(obj.get("key") or "")
    return str(getattr(obj, "key", "") or "")


def _size_of(obj: Any) -> Optional[int]:
    if isinstance(obj, dict):
        return obj.get("size")
    return getattr(obj, "size", None)


def relative_to(key: str, current_path: str) -> str:
    if not current_path:
        return key
    rel = key[len(current_path):] if key.startswith(current_path) else key
    return rel[1:] if rel.startswith("/") else rel


@dataclass
class Grouping:
    folders: List[str] = field(default_factory=list)
    files: List[Any] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(int(_size_of(f) or 0) for f in self.files)


def group_listing(objects: Iterable[Any], current_path: str) -> Grouping:
    """Split a listing into folders (discovery order, unique) and direct files.

    Keys whose relative path is empty (the key equals ``current_path``) are
    left out of both.
    """
    out = Grouping()
    seen: Set[str] = set()
    for obj in objects:
        rel = relative_to(_key_of(obj), current_path)
        if not rel:
            continue
        parts = rel.split("/")
        if len(parts) == 1:
            out.files.append(obj)
            continue
        name = parts[0]
        if name not in seen:
            seen.add(name)
            out.folders.append(name)
    return out


def path_parts(current_path: str) -> List[str]:
    return [p for p in (current_path or "").split("/") if p]


def breadcrumbs(current_path: str, *, root_name: str = "root") -> List[Dict[str, str]]:
    crumbs = [{"name": root_name, "path": ""}]
    parts = path_parts(current_path)
    for i, name in enumerate(parts):
        crumbs.append({"name": name, "path": "/".join(parts[: i + 1])})
    return crumbs


def child_path(current_path: str, folder: str) -> str:
    return f"{current_path}/{folder}" if current_path else folder


def basename(key: str) -> str:
    return (key or "").split("/")[-1]


def move_target_key(dragged_key: str, target_path: str) -> Optional[str]:
    """New key for ``dragged_key`` dropped onto folder ``target_path`` ('' = root)."""
    name = basename(dragged_key)
    if not name:
        return None
    return f"{target_path}/{name}" if target_path else name


def format_file_size(n: Optional[int]) -> str:
    if not n:
        return "0 Bytes"
    k = 1024.0
    units = ["Bytes", "KB", "MB", "GB"]
    size = float(n)
    i = 0
    while size >= k and i < len(units) - 1:
        size /= k
        i += 1
    return f"{round(size, 2):g} {units[i]}"


@dataclass
class BrowserState:
    """Per-session UI state: where we are, what is selected, what is being dragged."""

    current_path: str = ""
    selected: Set[str] = field(default_factory=set)
    dragged_key: Optional[str] = None
    drop_target: Optional[str] = None

    def navigate(self, path: str) -> None:
        self.current_path = "/".join(path_parts(path))
        self.selected.clear()

    def open_folder(self, folder: str) -> None:
        self.navigate(child_path(self.current_path, folder))

    def toggle_selection(self, key: str) -> None:
        if key in self.selected:
            self.selected.discard(key)
        else:
            self.selected.add(key)

    def toggle_select_all(self, files: Iterable[Any]) -> None:
        keys = {_key_of(f) for f in files}
        if self.selected and self.selected == keys:
            self.selected = set()
        else:
            self.selected = keys

    def clear_selection(self) -> None:
        self.selected = set()

    def start_drag(self, key: str) -> None:
        self.dragged_key = key

    def hover(self, target: Optional[str]) -> None:
        self.drop_target = target

    def end_drag(self) -> None:
        self.dragged_key = None
        self.drop_target = None

    def drop_on_folder(self, folder: str) -> Optional[Tuple[str, str]]:
        return self.drop_on(child_path(self.current_path, folder))

    def drop_on(self, target_path: str) -> Optional[Tuple[str, str]]:
        """Finish a drag; return (old_key, new_key) for the move, or None."""
        dragged = self.dragged_key
        self.end_drag()
        if not dragged:
            return None
        new_key = move_target_key(dragged, target_path)
        if new_key is None or new_key == dragged:
            return None
        return dragged, new_key

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPath": self.current_path,
            "selected": sorted(self.selected),
            "draggedKey": self.dragged_key,
            "dropTarget": self.drop_target,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BrowserState":
        data = data or {}
        return cls(
            current_path=str(data.get("currentPath") or ""),
            selected=set(data.get("selected") or []),
            dragged_key=data.get("draggedKey") or None,
            drop_target=data.get("dropTarget") or None,
        )
