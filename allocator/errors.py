class FormationError(Exception):
    """Base class for precondition failures of a stage formation."""

    kind = "formation_error"

    def __init__(self, reason: str, stage: str = None):
        self.stage = stage
        self.reason = reason
        super().__init__(self.reason)

    def to_dict(self) -> dict:
        return {
            'error': self.reason,
            'kind': self.kind,
            'stage': self.stage,
        }


class InsufficientMaps(FormationError):
    kind = "insufficient_maps"

    def __init__(self, available: int, requested: int, stage: str = None):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Not enough maps: {available} available, {requested} required per group",
            stage
        )


class EmptyPool(FormationError):
    kind = "empty_pool"

    def __init__(self, reason: str = None, stage: str = None):
        super().__init__(reason or "No players to distribute", stage)


class UnsatisfiableCapacity(FormationError):
    kind = "unsatisfiable_capacity"


class MissingFixedCount(FormationError):
    kind = "missing_fixed_count"

    def __init__(self, stage: str = None):
        super().__init__("Group count is not configured for the fixed-count policy", stage)


class ZeroGroups(FormationError):
    kind = "zero_groups"

    def __init__(self, group_count: int = 0, stage: str = None):
        self.group_count = group_count
        super().__init__(f"Group count must be at least 1, got {group_count}", stage)
