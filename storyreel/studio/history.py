from __future__ import annotations

from typing import Callable, List, Optional

from storyreel.errors import IndexOutOfRangeError

from .models import Project, Story


class StoryHistoryManager:
    """
    Linear list of story snapshots plus a cursor.

    Adding while the cursor is rewound discards everything after it, like an
    editor's undo stack. ``branch_from_version`` is the explicit form of the
    same truncation.
    """

    def __init__(
        self,
        history: Optional[List[Story]] = None,
        index: int = -1,
        on_change: Optional[Callable[[List[Story], int], None]] = None,
    ) -> None:
        self._history: List[Story] = history if history is not None else []
        if index < -1 or index >= len(self._history) or (index == -1 and self._history):
            raise IndexOutOfRangeError(f"History index {index} is invalid for {len(self._history)} versions")
        self._index = index
        self._on_change = on_change

    @classmethod
    def for_project(cls, project: Project) -> "StoryHistoryManager":
        """Bind to ``project.story_history``, mirroring the cursor onto the record."""

        def sync(history: List[Story], index: int) -> None:
            project.story_history_index = index
            project.current_story = history[index] if index >= 0 else None

        return cls(history=project.story_history, index=project.story_history_index, on_change=sync)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self._history, self._index)

    def add_version(self, story: Story) -> None:
        del self._history[self._index + 1:]
        self._history.append(story)
        self._index = len(self._history) - 1
        self._changed()

    def get_current_version(self) -> Optional[Story]:
        if self._index < 0:
            return None
        return self._history[self._index]

    def get_history(self) -> List[Story]:
        return list(self._history)

    def get_history_index(self) -> int:
        return self._index

    def get_version_count(self) -> int:
        return len(self._history)

    def branch_from_version(self, index: int) -> Story:
        if index < 0 or index >= len(self._history):
            raise IndexOutOfRangeError(f"Version index {index} out of range (0..{len(self._history) - 1})")
        del self._history[index + 1:]
        self._index = index
        self._changed()
        return self._history[index]
