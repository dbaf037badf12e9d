from dataclasses import dataclass, field


@dataclass
class LifecycleState:
    """Per-type resources provisioned during the current plugin lifetime.

    Membership means the external resource exists and accepts operations;
    absence means it must be (re)created before use.
    """

    index_started: set[type] = field(default_factory=set)
    river_started: set[type] = field(default_factory=set)

    def clear(self) -> None:
        self.index_started.clear()
        self.river_started.clear()
