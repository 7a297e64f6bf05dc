# newsletter_access/models/enums.py

from enum import Enum

# --- Actor Related Enums ---

class Role(str, Enum):
    """Roles an actor can hold. UNKNOWN is the fail-closed value for unresolved actors."""
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"
    STUDENT = "student"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value) -> "Role":
        """Map a stored role string to a Role; anything unrecognised is UNKNOWN."""
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            role = cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN
        return role

# --- Article Related Enums ---

class VisibilityType(str, Enum):
    PUBLIC = "public"
    CLASS_RESTRICTED = "class_restricted"

class ArticleAction(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"

class RestrictedViewPolicy(str, Enum):
    """Who may view a class-restricted article (besides admins)."""
    CLASS_MEMBERSHIP = "class_membership" # viewer's classes must intersect the article's classes
    ANY_ROLE = "any_role"                 # any resolved role may view

# --- Aggregation Related Enums ---

class AggregationStep(str, Enum):
    """External fetches performed while building a visible article list."""
    ENROLLMENT_FETCH = "enrollment_fetch"
    PUBLIC_FETCH = "public_fetch"
    RESTRICTED_FETCH = "restricted_fetch"
    CLASS_FETCH = "class_fetch"
