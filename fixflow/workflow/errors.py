from typing import Optional


class FlowError(Exception):
    """Base class for expected, recoverable flow conditions."""


class NoActiveFlow(FlowError):
    def __init__(self, owner_id: str):
        self.owner_id = owner_id
        super().__init__(f"No active flow for owner {owner_id}")


class NoPreviousStep(FlowError):
    def __init__(self, owner_id: str):
        self.owner_id = owner_id
        super().__init__(f"No previous step available for owner {owner_id}")


class InvalidStepTransition(FlowError, ValueError):
    def __init__(self, owner_id: str, current_step: int, requested_step: int, total_steps: int):
        self.owner_id = owner_id
        self.current_step = current_step
        self.requested_step = requested_step
        self.total_steps = total_steps
        super().__init__(
            f"Cannot move owner {owner_id} from step {current_step} to step {requested_step} "
            f"(steps must increase and stay within 1..{total_steps})"
        )


class VersionConflict(FlowError):
    """The stored session changed between read and write."""

    def __init__(self, owner_id: str, expected: Optional[int], actual: Optional[int]):
        self.owner_id = owner_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Flow for owner {owner_id} is at version {actual}, expected {expected}")


class StorageFailure(FlowError):
    """The backing store could not complete a read or write. Persisted state is indeterminate."""


class CorruptRecord(StorageFailure):
    """A stored record was read but could not be decoded into a session."""
