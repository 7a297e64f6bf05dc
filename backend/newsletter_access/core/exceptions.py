# newsletter_access/core/exceptions.py
"""
Error taxonomy for the access engine.

- PermissionDenied: raised only by the assertive mutation guards
  (assert_can_edit / assert_can_delete). Filtering predicates never raise.
- ValidationError: raised by the restriction validator.
- DependencyFailure: raised by the visibility aggregator when any source
  fetch fails. No partial result is ever returned alongside it.

An unresolved actor is not an error: it resolves to Role.UNKNOWN.
"""

from typing import Optional

from newsletter_access.models.enums import Role, ArticleAction, AggregationStep

# --- Custom Exceptions ---
class AccessControlError(Exception):
    """Base class for access engine errors."""
    pass

class PermissionDenied(AccessControlError):
    """Raised when an actor attempts a mutating action they are not allowed to perform."""

    def __init__(self, role: Role, action: ArticleAction, article_id: str, reason: str):
        self.role = role
        self.action = action
        self.article_id = article_id
        self.reason = reason
        super().__init__(reason)

class ValidationError(AccessControlError):
    """Raised when article visibility metadata would break an invariant."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)

class DependencyFailure(AccessControlError):
    """Raised when an aggregation fetch fails. Callers should treat it as retryable."""

    def __init__(self, step: AggregationStep, cause: Optional[BaseException] = None, timed_out: bool = False):
        self.step = step
        self.cause = cause
        self.timed_out = timed_out
        detail = "timed out" if timed_out else (str(cause) if cause else "failed")
        super().__init__(f"Aggregation step '{step.value}' {detail}")
