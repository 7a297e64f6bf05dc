# newsletter_access/db/ports.py
"""
Contracts for the external stores the access engine reads from.

Implementations may raise any exception on lookup failure; the role
resolver turns that into a fail-closed default and the visibility
aggregator into a DependencyFailure.
"""

from typing import Optional, List, Set, Protocol

from newsletter_access.models.article import Article
from newsletter_access.models.class_group import ClassGroup


class DirectoryStore(Protocol):
    async def get_role(self, actor_id: str) -> Optional[str]:
        """Stored role string for the actor, or None when the actor has no role row."""
        ...

    async def get_taught_classes(self, teacher_id: str) -> Set[str]:
        ...

    async def get_active_enrollments(self, family_id: str) -> Set[str]:
        """Class IDs of the family's children, graduated enrollments excluded."""
        ...

    async def get_parent_families(self, parent_id: str) -> Set[str]:
        ...

    async def get_student_classes(self, student_id: str) -> Set[str]:
        """Active class IDs of a student."""
        ...


class ContentStore(Protocol):
    async def query_public_articles(self, week_number: str) -> List[Article]:
        """Published, non-deleted public articles of the week."""
        ...

    async def query_restricted_articles(self, week_number: str) -> List[Article]:
        """Published, non-deleted class-restricted articles of the week."""
        ...

    async def update_visibility(self, article: Article) -> Article:
        """Persist the article's visibility metadata."""
        ...


class ClassDirectory(Protocol):
    async def get_class(self, class_id: str) -> Optional[ClassGroup]:
        ...
