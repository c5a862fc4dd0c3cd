from typing import Iterable, Optional


class DomainError(ValueError):
    """Base class for every domain rule violation."""


class InvalidTransitionError(DomainError):
    def __init__(self, current_state, event_type, allowed: Optional[Iterable] = None):
        self.current_state = current_state
        self.event_type = event_type
        self.allowed = sorted(allowed or [], key=lambda t: t.value)
        super().__init__(
            f"Cannot execute '{event_type.value}' while in '{current_state.value}' state"
        )


class EventConflictError(DomainError):
    pass


class BusinessRuleViolation(DomainError):
    def __init__(self, rule_name: str, message: str):
        self.rule_name = rule_name
        super().__init__(message)
