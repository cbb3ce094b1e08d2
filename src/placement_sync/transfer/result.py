"""Transfer result accumulated over one batch."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from placement_sync.models.enums import ExecutionStrategy, WriteOutcome


@dataclass
class MappingOutcome:
    """Outcome of one (target, mapping) pair."""

    target_id: int
    target_attribute: str
    outcome: WriteOutcome
    value: str | None = None
    detail: str = ""


@dataclass
class TransferResult:
    """Counts, messages and per-pair outcomes of a transfer batch.

    Built incrementally. A fault on one target degrades that target only;
    nothing already recorded is discarded.
    """

    strategy: ExecutionStrategy = ExecutionStrategy.OPTIMIZED
    success: bool = False
    transferred_count: int = 0
    """Unique targets that received at least one write."""

    failed_count: int = 0
    """Failed (target, mapping) pairs plus targets that faulted as a whole."""

    skipped_count: int = 0
    """Writes skipped because the current value already matched."""

    errors: list[str] = field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]
    warnings: list[str] = field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]
    message: str = ""
    transferred_target_ids: list[int] = field(  # pyright: ignore[reportUnknownVariableType]
        default_factory=list
    )
    outcomes: list[MappingOutcome] = field(  # pyright: ignore[reportUnknownVariableType]
        default_factory=list
    )
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def failed(
        cls, message: str, *, strategy: ExecutionStrategy = ExecutionStrategy.OPTIMIZED
    ) -> TransferResult:
        """A result for a batch that could not run at all."""
        return cls(strategy=strategy, success=False, errors=[message], message=message)

    def record(self, outcome: MappingOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.outcome == WriteOutcome.WRITTEN:
            if outcome.target_id not in self.transferred_target_ids:
                self.transferred_target_ids.append(outcome.target_id)
                self.transferred_count += 1
        elif outcome.outcome == WriteOutcome.SKIPPED:
            self.skipped_count += 1
        elif outcome.outcome == WriteOutcome.FAILED:
            self.failed_count += 1
            self.errors.append(outcome.detail)
        elif outcome.detail:
            self.warnings.append(outcome.detail)

    def add_error(self, message: str) -> None:
        """Record a target-level failure not tied to a single mapping."""
        self.failed_count += 1
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def absorb_writes(self, earlier: TransferResult) -> None:
        """Credit writes an interrupted earlier pass made in this same batch.

        A re-run finds those values current and records them as SKIPPED;
        each such skip is turned back into the earlier WRITTEN outcome.
        """
        for written in earlier.outcomes:
            if written.outcome != WriteOutcome.WRITTEN:
                continue
            key = written.target_attribute.casefold()
            for position in range(len(self.outcomes) - 1, -1, -1):
                outcome = self.outcomes[position]
                if outcome.target_id == written.target_id and outcome.target_attribute.casefold() == key:
                    if outcome.outcome == WriteOutcome.SKIPPED:
                        self.outcomes[position] = written
                        self.skipped_count -= 1
                    break
            else:
                self.outcomes.append(written)
            if written.target_id not in self.transferred_target_ids:
                self.transferred_target_ids.append(written.target_id)
                self.transferred_count += 1

    def outcome_for(self, target_id: int, target_attribute: str) -> WriteOutcome | None:
        """Last recorded outcome for a (target, attribute) pair."""
        key = target_attribute.casefold()
        for outcome in reversed(self.outcomes):
            if outcome.target_id == target_id and outcome.target_attribute.casefold() == key:
                return outcome.outcome
        return None

    def finalize(self) -> TransferResult:
        """Set ``success`` and the summary message from the counts."""
        self.success = self.failed_count == 0
        self.message = (
            f"{self.strategy.value.capitalize()} transfer complete: "
            f"{self.transferred_count} placements updated, "
            f"{self.skipped_count} values already current, "
            f"{self.failed_count} failed, {len(self.warnings)} warnings"
        )
        return self
