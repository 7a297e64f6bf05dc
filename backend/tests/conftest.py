# backend/tests/conftest.py
import sys
from pathlib import Path

# Add backend root to sys.path so 'newsletter_access' imports resolve without an install
BACKEND_ROOT = Path(__file__).resolve().parent.parent
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import asyncio
from collections import Counter
from typing import Dict, List, Optional, Set

import pytest

from newsletter_access.models.article import Article
from newsletter_access.models.class_group import ClassGroup
from newsletter_access.models.enums import RestrictedViewPolicy, VisibilityType
from newsletter_access.services.access_engine import AccessEngine
from newsletter_access.services.permission_cache import PermissionCache

WEEK = "2025-W47"

# --- In-memory stores ---

class FakeDirectoryStore:
    """Directory store backed by dicts. `failures` maps a method name to the exception it raises."""

    def __init__(self):
        self.roles: Dict[str, str] = {}
        self.taught: Dict[str, Set[str]] = {}
        self.enrollments: Dict[str, Set[str]] = {}
        self.families: Dict[str, Set[str]] = {}
        self.student_classes: Dict[str, Set[str]] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls = Counter()

    async def _enter(self, method: str):
        self.calls[method] += 1
        await asyncio.sleep(0)
        if method in self.failures:
            raise self.failures[method]

    async def get_role(self, actor_id: str) -> Optional[str]:
        await self._enter("get_role")
        return self.roles.get(actor_id)

    async def get_taught_classes(self, teacher_id: str) -> Set[str]:
        await self._enter("get_taught_classes")
        return set(self.taught.get(teacher_id, set()))

    async def get_active_enrollments(self, family_id: str) -> Set[str]:
        await self._enter("get_active_enrollments")
        return set(self.enrollments.get(family_id, set()))

    async def get_parent_families(self, parent_id: str) -> Set[str]:
        await self._enter("get_parent_families")
        return set(self.families.get(parent_id, set()))

    async def get_student_classes(self, student_id: str) -> Set[str]:
        await self._enter("get_student_classes")
        return set(self.student_classes.get(student_id, set()))


class FakeContentStore:
    """
    Article store filtering only by week and visibility type, so tests can
    feed unpublished or deleted rows through to the engine.
    """

    def __init__(self):
        self.articles: Dict[str, Article] = {}
        self.failures: Dict[str, Exception] = {}
        self.updates: List[Article] = []

    def add(self, *articles: Article) -> None:
        for article in articles:
            self.articles[article.id] = article

    async def _rows(self, method: str, week_number: str, visibility_type: VisibilityType) -> List[Article]:
        await asyncio.sleep(0)
        if method in self.failures:
            raise self.failures[method]
        return [
            article for article in self.articles.values()
            if article.week_number == week_number and article.visibility_type == visibility_type
        ]

    async def query_public_articles(self, week_number: str) -> List[Article]:
        return await self._rows("query_public_articles", week_number, VisibilityType.PUBLIC)

    async def query_restricted_articles(self, week_number: str) -> List[Article]:
        return await self._rows("query_restricted_articles", week_number, VisibilityType.CLASS_RESTRICTED)

    async def update_visibility(self, article: Article) -> Article:
        self.updates.append(article)
        self.articles[article.id] = article
        return article


class FakeClassDirectory:
    def __init__(self):
        self.classes: Dict[str, ClassGroup] = {}
        self.failure: Optional[Exception] = None

    def add(self, class_id: str, grade_year: int, class_name: Optional[str] = None) -> None:
        self.classes[class_id] = ClassGroup(id=class_id, grade_year=grade_year, class_name=class_name)

    async def get_class(self, class_id: str) -> Optional[ClassGroup]:
        await asyncio.sleep(0)
        if self.failure is not None:
            raise self.failure
        return self.classes.get(class_id)


# --- Fixtures ---

@pytest.fixture
def make_article():
    """Factory for published articles of WEEK; keyword arguments override fields."""
    def _make(article_id: str, classes: Optional[List[str]] = None, **fields) -> Article:
        data = {
            "id": article_id,
            "week_number": WEEK,
            "title": f"Article {article_id}",
            "is_published": True,
        }
        if classes is not None:
            data["visibility_type"] = VisibilityType.CLASS_RESTRICTED
            data["restricted_to_classes"] = classes
        data.update(fields)
        return Article(**data)
    return _make


@pytest.fixture
def directory() -> FakeDirectoryStore:
    store = FakeDirectoryStore()
    store.roles.update({
        "admin-1": "admin",
        "teacher-a": "teacher",
        "parent-1": "parent",
        "student-1": "student",
    })
    store.taught["teacher-a"] = {"A"}
    store.families["parent-1"] = {"fam-1"}
    store.enrollments["fam-1"] = {"A", "B"}
    store.student_classes["student-1"] = {"B"}
    return store


@pytest.fixture
def content_store() -> FakeContentStore:
    return FakeContentStore()


@pytest.fixture
def class_directory() -> FakeClassDirectory:
    classes = FakeClassDirectory()
    classes.add("A", 5, "Grade 5A")
    classes.add("B", 3, "Grade 3B")
    classes.add("C", 1, "Grade 1C")
    return classes


@pytest.fixture
def cache() -> PermissionCache:
    return PermissionCache()


@pytest.fixture
def engine(directory, content_store, class_directory, cache) -> AccessEngine:
    return AccessEngine(
        directory=directory,
        content_store=content_store,
        class_directory=class_directory,
        cache=cache,
        view_policy=RestrictedViewPolicy.CLASS_MEMBERSHIP,
    )
