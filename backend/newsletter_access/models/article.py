# newsletter_access/models/article.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, FrozenSet
from datetime import datetime, timezone

from .enums import VisibilityType

class Article(BaseModel):
    """
    Newsletter article as read from the content store.

    Only the visibility metadata matters to the access engine; body content
    is carried through untouched. `restricted_to_classes` may be empty when
    read from storage (legacy rows) so the read-time fail-closed rule can
    apply; the restriction validator never writes an empty restricted list.
    """
    id: str = Field(..., alias="_id", description="Article identifier")
    week_number: str = Field(..., description="Window the article belongs to (e.g., '2025-W47')")
    title: str = Field(default="", description="Article headline")
    article_order: int = Field(default=0, description="Display sequence within the week")
    is_published: bool = Field(default=False, description="Only published articles are listed")
    is_deleted: bool = Field(default=False, description="Flag for soft delete status")
    deleted_at: Optional[datetime] = Field(default=None, description="Soft-delete timestamp")
    visibility_type: VisibilityType = Field(default=VisibilityType.PUBLIC)
    restricted_to_classes: List[str] = Field(default_factory=list, description="Class IDs for class_restricted articles")
    created_by: Optional[str] = Field(default=None, description="User ID of the author")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
    )

    @field_validator("restricted_to_classes", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    @property
    def is_public(self) -> bool:
        return self.visibility_type == VisibilityType.PUBLIC

    @property
    def is_class_restricted(self) -> bool:
        return self.visibility_type == VisibilityType.CLASS_RESTRICTED

    @property
    def is_removed(self) -> bool:
        return self.is_deleted or self.deleted_at is not None

    @property
    def is_listed(self) -> bool:
        """Published and not soft-deleted."""
        return self.is_published and not self.is_removed

    @property
    def restricted_class_ids(self) -> FrozenSet[str]:
        return frozenset(self.restricted_to_classes)
