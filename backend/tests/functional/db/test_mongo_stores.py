# backend/tests/functional/db/test_mongo_stores.py
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from newsletter_access.core.config import settings
from newsletter_access.models.enums import VisibilityType
from newsletter_access.db.mongo_stores import (
    MongoClassDirectory,
    MongoContentStore,
    MongoDirectoryStore,
)

pytestmark = pytest.mark.asyncio


class AsyncCursor:
    """Minimal stand-in for a Motor cursor: sortable, async-iterable, to_list-able."""

    def __init__(self, docs):
        self.docs = list(docs)
        self.sort_args = None

    def sort(self, *args):
        self.sort_args = args
        return self

    async def to_list(self, length=None):
        return list(self.docs)

    def __aiter__(self):
        self._iter = iter(self.docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


@pytest.fixture
def collections():
    return {}


@pytest.fixture
def mock_db(collections):
    def _collection(name):
        return collections.setdefault(name, MagicMock(name=name))
    db = MagicMock()
    db.__getitem__.side_effect = _collection
    return db


# --- Directory store ---

async def test_get_role(mock_db, collections):
    store = MongoDirectoryStore(mock_db)
    roles = collections[settings.USER_ROLES_COLLECTION]
    roles.find_one = AsyncMock(return_value={"_id": "u1", "role": "teacher"})

    assert await store.get_role("u1") == "teacher"
    roles.find_one.assert_awaited_once_with({"_id": "u1"}, {"role": 1})

    roles.find_one = AsyncMock(return_value=None)
    assert await store.get_role("missing") is None


async def test_get_taught_classes(mock_db, collections):
    store = MongoDirectoryStore(mock_db)
    assignments = collections[settings.TEACHER_ASSIGNMENT_COLLECTION]
    assignments.find = MagicMock(return_value=AsyncCursor([
        {"_id": "ta-1", "teacher_id": "t1", "class_id": "A"},
        {"_id": "ta-2", "teacher_id": "t1", "class_id": "B"},
        {"_id": "ta-3", "teacher_id": "t1", "class_id": "A"},
        {"_id": "ta-4", "teacher_id": "t1"},  # no class_id, skipped
    ]))

    assert await store.get_taught_classes("t1") == {"A", "B"}
    assignments.find.assert_called_once_with({"teacher_id": "t1"})


async def test_active_enrollments_exclude_graduated(mock_db, collections):
    store = MongoDirectoryStore(mock_db)
    enrollments = collections[settings.CHILD_ENROLLMENT_COLLECTION]
    enrollments.find = MagicMock(return_value=AsyncCursor([
        {"_id": "e1", "child_id": "c1", "family_id": "fam-1", "class_id": "A"},
        {"_id": "e2", "child_id": "c2", "family_id": "fam-1", "class_id": "B",
         "graduated_at": datetime(2025, 6, 30, tzinfo=timezone.utc)},
        {"_id": "e3", "family_id": "fam-1", "class_id": "C"},  # no child_id, skipped
    ]))

    assert await store.get_active_enrollments("fam-1") == {"A"}
    query = enrollments.find.call_args.args[0]
    assert query == {"family_id": "fam-1", "graduated_at": None}


async def test_parent_families_and_student_classes(mock_db, collections):
    store = MongoDirectoryStore(mock_db)
    families = collections[settings.FAMILY_ENROLLMENT_COLLECTION]
    families.find = MagicMock(return_value=AsyncCursor([{"family_id": "fam-1"}, {"family_id": "fam-2"}]))
    enrollments = collections[settings.CHILD_ENROLLMENT_COLLECTION]
    enrollments.find = MagicMock(return_value=AsyncCursor([
        {"_id": "e1", "child_id": "s1", "family_id": "fam-1", "class_id": "C"},
    ]))

    assert await store.get_parent_families("p1") == {"fam-1", "fam-2"}
    assert await store.get_student_classes("s1") == {"C"}
    assert enrollments.find.call_args.args[0] == {"child_id": "s1", "graduated_at": None}


async def test_directory_errors_propagate(mock_db, collections):
    store = MongoDirectoryStore(mock_db)
    roles = collections[settings.USER_ROLES_COLLECTION]
    roles.find_one = AsyncMock(side_effect=ConnectionError("no primary"))
    with pytest.raises(ConnectionError):
        await store.get_role("u1")


# --- Content store ---

async def test_query_public_articles(mock_db, collections):
    store = MongoContentStore(mock_db)
    articles = collections[settings.ARTICLES_COLLECTION]
    cursor = AsyncCursor([
        {"_id": "p1", "week_number": "2025-W47", "is_published": True, "article_order": 1},
        {"_id": "bad"},  # missing week_number, skipped
    ])
    articles.find = MagicMock(return_value=cursor)

    result = await store.query_public_articles("2025-W47")

    assert [a.id for a in result] == ["p1"]
    query = articles.find.call_args.args[0]
    assert query["week_number"] == "2025-W47"
    assert query["is_published"] is True
    assert query["visibility_type"] == "public"
    assert query["is_deleted"] == {"$ne": True}
    assert query["deleted_at"] is None
    assert cursor.sort_args == ("article_order", 1)


async def test_query_restricted_articles(mock_db, collections):
    store = MongoContentStore(mock_db)
    articles = collections[settings.ARTICLES_COLLECTION]
    articles.find = MagicMock(return_value=AsyncCursor([{
        "_id": "r1",
        "week_number": "2025-W47",
        "is_published": True,
        "visibility_type": "class_restricted",
        "restricted_to_classes": None,
    }]))

    result = await store.query_restricted_articles("2025-W47")

    assert result[0].visibility_type == VisibilityType.CLASS_RESTRICTED
    assert result[0].restricted_to_classes == []
    assert articles.find.call_args.args[0]["visibility_type"] == "class_restricted"


async def test_update_visibility(mock_db, collections, make_article):
    store = MongoContentStore(mock_db)
    articles = collections[settings.ARTICLES_COLLECTION]
    article = make_article("r1", classes=["A"])
    articles.find_one_and_update = AsyncMock(return_value={**article.model_dump(by_alias=True)})

    saved = await store.update_visibility(article)

    assert saved.id == "r1"
    query, update = articles.find_one_and_update.call_args.args
    assert query == {"_id": "r1"}
    assert update["$set"]["visibility_type"] == "class_restricted"
    assert update["$set"]["restricted_to_classes"] == ["A"]


async def test_update_visibility_missing_article(mock_db, collections, make_article):
    store = MongoContentStore(mock_db)
    collections[settings.ARTICLES_COLLECTION].find_one_and_update = AsyncMock(return_value=None)
    with pytest.raises(LookupError):
        await store.update_visibility(make_article("gone"))


# --- Class directory ---

async def test_get_class(mock_db, collections):
    directory = MongoClassDirectory(mock_db)
    classes = collections[settings.CLASSES_COLLECTION]
    classes.find_one = AsyncMock(return_value={"_id": "A", "class_name": "Grade 5A", "class_grade_year": 5})

    group = await directory.get_class("A")
    assert group.id == "A"
    assert group.grade_year == 5

    classes.find_one = AsyncMock(return_value=None)
    assert await directory.get_class("Z") is None
