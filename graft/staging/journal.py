"""Record of applied install steps, each with an undo action.

The pipeline always keeps a journal.  It is only unwound when the caller
enables ``rollback_on_failure``; otherwise a failed install leaves already
applied steps on disk.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from graft.errors import InstallError
from graft.utils import print_warning

UndoAction = Callable[[], Awaitable[None]]


@dataclass
class StagedStep:
    """A single applied mutation."""

    description: str
    undo: UndoAction


@dataclass
class InstallJournal:
    """Ordered list of applied steps plus actions to run on success."""

    steps: list[StagedStep] = field(default_factory=list)
    _on_commit: list[UndoAction] = field(default_factory=list)

    def record(self, description: str, undo: UndoAction) -> StagedStep:
        step = StagedStep(description=description, undo=undo)
        self.steps.append(step)
        return step

    def on_commit(self, action: UndoAction) -> None:
        """Register cleanup (e.g. discarding backups) for a successful install."""
        self._on_commit.append(action)

    @property
    def descriptions(self) -> list[str]:
        return [step.description for step in self.steps]

    async def commit(self) -> None:
        for action in self._on_commit:
            await action()
        self._on_commit.clear()

    async def rollback(self) -> list[str]:
        """Undo every recorded step, newest first.

        Undo failures are reported and skipped so the remaining steps still
        get a chance to unwind.

        Returns:
            Descriptions of the steps whose undo action failed.
        """
        failed: list[str] = []
        while self.steps:
            step = self.steps.pop()
            try:
                await step.undo()
            except InstallError as exc:
                print_warning(f"  Could not undo '{step.description}': {exc}")
                failed.append(step.description)
        return failed
