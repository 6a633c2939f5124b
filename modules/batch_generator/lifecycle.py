"""
Per-item lifecycle state for the presentation layer.

Each item moves processing → succeeded | failed exactly once. Every
transition is visible immediately through entries() and the optional
on_change listener.
"""
from typing import Callable, Dict, List, Optional

from shared.logging import get_logger
from shared.models.lifecycle import LifecycleEntry, LifecycleState

logger = get_logger("batch_generator.lifecycle")

ChangeListener = Callable[[LifecycleEntry], None]


def make_item_id(index: int) -> str:
    """Stable id of the batch item at index."""
    return f"item-{index}"


class LifecycleTracker:
    """Owns the LifecycleEntry of every item in the current batch."""

    def __init__(self, on_change: Optional[ChangeListener] = None):
        self._entries: Dict[str, LifecycleEntry] = {}
        self._on_change = on_change

    def _notify(self, entry: LifecycleEntry) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(entry.model_copy())
        except Exception as e:
            logger.warning(
                f"Lifecycle listener failed: {str(e)}",
                extra={"item_id": entry.id, "state": entry.state.value}
            )

    def reset(self) -> None:
        """Drop the previous batch's entries."""
        self._entries = {}

    def start(self, item_id: str, prompt: str) -> LifecycleEntry:
        """Register an item as processing."""
        entry = LifecycleEntry(id=item_id, prompt=prompt)
        self._entries[item_id] = entry
        self._notify(entry)
        return entry.model_copy()

    def begin_batch(self, prompts: List[str]) -> List[str]:
        """Supersede the previous batch and start one entry per prompt."""
        self.reset()
        ids = []
        for index, prompt in enumerate(prompts):
            ids.append(make_item_id(index))
            self.start(ids[-1], prompt)
        return ids

    def _transition(
        self,
        item_id: str,
        state: LifecycleState,
        artifact: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        entry = self._entries.get(item_id)
        if entry is None or not entry.is_processing:
            logger.warning(
                "Ignoring lifecycle transition for item not in processing state",
                extra={
                    "item_id": item_id,
                    "target_state": state.value,
                    "current_state": entry.state.value if entry else None,
                }
            )
            return False

        entry.state = state
        entry.artifact = artifact
        entry.error_message = error_message
        self._notify(entry)
        return True

    def complete(self, item_id: str, artifact: str) -> bool:
        """Mark an item succeeded. Returns False if it was not processing."""
        return self._transition(item_id, LifecycleState.SUCCEEDED, artifact=artifact)

    def fail(self, item_id: str, error_message: str) -> bool:
        """Mark an item failed. Returns False if it was not processing."""
        return self._transition(item_id, LifecycleState.FAILED, error_message=error_message)

    def get(self, item_id: str) -> Optional[LifecycleEntry]:
        entry = self._entries.get(item_id)
        return entry.model_copy() if entry else None

    def entries(self) -> List[LifecycleEntry]:
        """Snapshot of all entries in batch order."""
        return [entry.model_copy() for entry in self._entries.values()]

    @property
    def is_processing(self) -> bool:
        return any(entry.is_processing for entry in self._entries.values())
