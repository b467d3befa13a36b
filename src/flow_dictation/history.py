from __future__ import annotations


class TranscriptHistory:
    """Snapshots of the final transcript after each committed change, oldest first.

    The stack always holds at least one entry so ``top`` mirrors the live
    transcript. Lives only as long as one dictation session.
    """

    def __init__(self, initial: str = "") -> None:
        self._entries: list[str] = [initial]

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def top(self) -> str:
        return self._entries[-1]

    def push(self, snapshot: str) -> None:
        # Duplicates are kept; each commit is one undo step.
        self._entries.append(snapshot)

    def undo(self) -> str | None:
        if len(self._entries) <= 1:
            return None
        self._entries.pop()
        return self._entries[-1]

    def reset(self, initial: str = "") -> None:
        self._entries = [initial]

    def snapshots(self) -> tuple[str, ...]:
        return tuple(self._entries)


__all__ = ["TranscriptHistory"]
