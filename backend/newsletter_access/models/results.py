# newsletter_access/models/results.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, FrozenSet

from .enums import Role
from .article import Article
from .class_group import ClassGroup

class ActorContext(BaseModel):
    """An actor's resolved role and the class IDs relevant to that role."""
    actor_id: str
    role: Role = Role.UNKNOWN
    class_ids: FrozenSet[str] = Field(default_factory=frozenset)

    model_config = ConfigDict(frozen=True)

class PermissionCheckResult(BaseModel):
    allowed: bool
    reason: Optional[str] = None

class FamilyArticles(BaseModel):
    """Visible articles for a family, plus the classes the list was built from."""
    articles: List[Article] = Field(default_factory=list, description="Ordered visible articles")
    class_ids: FrozenSet[str] = Field(default_factory=frozenset, description="Active classes of the family's children")
    classes: List[ClassGroup] = Field(default_factory=list, description="Resolved classes, grade year descending")
    total_count: int = 0
    execution_time_ms: Optional[float] = None
