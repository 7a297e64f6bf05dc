# newsletter_access/models/class_group.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime, timezone

class ClassGroup(BaseModel):
    """A class: unit of both teacher assignment and article restriction."""
    id: str = Field(..., alias="_id", description="Class identifier (e.g., 'A1', 'B2')")
    class_name: Optional[str] = Field(None, description="Human-readable name (e.g., 'Grade 1A')")
    grade_year: int = Field(..., alias="class_grade_year", description="Grade level, used to order family article lists")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )

class TeacherAssignment(BaseModel):
    """A teacher assigned to one class. A teacher may hold several assignments."""
    teacher_id: str = Field(..., description="User ID of the teacher")
    class_id: str = Field(..., description="Class the teacher is assigned to")
    assigned_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True)

class ChildEnrollment(BaseModel):
    """A child of a family enrolled in a class, active until graduated_at is set."""
    child_id: str = Field(..., description="User ID of the child (role 'student')")
    family_id: str = Field(..., description="Family the child belongs to")
    class_id: str = Field(..., description="Class the child is enrolled in")
    enrolled_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    graduated_at: Optional[datetime] = Field(None, description="Graduation marker (None = still enrolled)")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_active(self) -> bool:
        return self.graduated_at is None
