# newsletter_access/db/mongo_stores.py
"""
Motor implementations of the directory, content and class stores.

Collection layout (names configurable in core.config):
- user_roles: {_id: user id, role}
- classes: {_id: class id, class_name, class_grade_year}
- articles: Article documents keyed by _id
- teacher_class_assignment: {teacher_id, class_id}
- child_class_enrollment: {child_id, family_id, class_id, graduated_at}
- family_enrollment: {family_id, parent_id, relationship}

Driver errors propagate to the caller. A document that fails model
validation is logged and skipped.
"""

import logging
from typing import Any, Dict, List, Optional, Set
from datetime import datetime, timezone

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pydantic import ValidationError as ModelValidationError

from newsletter_access.core.config import settings
from newsletter_access.models.article import Article
from newsletter_access.models.class_group import ChildEnrollment, ClassGroup, TeacherAssignment
from newsletter_access.models.enums import VisibilityType

logger = logging.getLogger(__name__)


def soft_delete_filter(include_deleted: bool = False) -> Dict[str, Any]:
    if include_deleted: return {}
    # Missing flags count as not deleted
    return {"is_deleted": {"$ne": True}, "deleted_at": None}

def active_enrollment_filter() -> Dict[str, Any]:
    return {"graduated_at": None}


class MongoDirectoryStore:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.roles_collection = db[settings.USER_ROLES_COLLECTION]
        self.assignments_collection = db[settings.TEACHER_ASSIGNMENT_COLLECTION]
        self.enrollments_collection = db[settings.CHILD_ENROLLMENT_COLLECTION]
        self.families_collection = db[settings.FAMILY_ENROLLMENT_COLLECTION]

    async def get_role(self, actor_id: str) -> Optional[str]:
        doc = await self.roles_collection.find_one({"_id": actor_id}, {"role": 1})
        if doc is None:
            return None
        return doc.get("role")

    async def get_taught_classes(self, teacher_id: str) -> Set[str]:
        assignments = await self._assignments({"teacher_id": teacher_id})
        return {assignment.class_id for assignment in assignments}

    async def get_active_enrollments(self, family_id: str) -> Set[str]:
        enrollments = await self._enrollments({"family_id": family_id, **active_enrollment_filter()})
        return {enrollment.class_id for enrollment in enrollments if enrollment.is_active}

    async def get_parent_families(self, parent_id: str) -> Set[str]:
        docs = await self.families_collection.find(
            {"parent_id": parent_id}, {"family_id": 1}
        ).to_list(length=None)
        return {doc["family_id"] for doc in docs if doc.get("family_id")}

    async def get_student_classes(self, student_id: str) -> Set[str]:
        enrollments = await self._enrollments({"child_id": student_id, **active_enrollment_filter()})
        return {enrollment.class_id for enrollment in enrollments if enrollment.is_active}

    async def _assignments(self, query: Dict[str, Any]) -> List[TeacherAssignment]:
        assignments: List[TeacherAssignment] = []
        async for doc in self.assignments_collection.find(query):
            try:
                assignments.append(TeacherAssignment.model_validate(doc))
            except ModelValidationError as validation_err:
                logger.error(f"Teacher assignment validation failed for doc {doc.get('_id', 'UNKNOWN')}: {validation_err}")
        return assignments

    async def _enrollments(self, query: Dict[str, Any]) -> List[ChildEnrollment]:
        enrollments: List[ChildEnrollment] = []
        async for doc in self.enrollments_collection.find(query):
            try:
                enrollments.append(ChildEnrollment.model_validate(doc))
            except ModelValidationError as validation_err:
                logger.error(f"Child enrollment validation failed for doc {doc.get('_id', 'UNKNOWN')}: {validation_err}")
        return enrollments


class MongoContentStore:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.articles_collection = db[settings.ARTICLES_COLLECTION]

    async def query_public_articles(self, week_number: str) -> List[Article]:
        return await self._query_week(week_number, VisibilityType.PUBLIC)

    async def query_restricted_articles(self, week_number: str) -> List[Article]:
        return await self._query_week(week_number, VisibilityType.CLASS_RESTRICTED)

    async def _query_week(self, week_number: str, visibility_type: VisibilityType) -> List[Article]:
        query = {
            "week_number": week_number,
            "is_published": True,
            "visibility_type": visibility_type.value,
            **soft_delete_filter(),
        }
        logger.debug(f"Querying {visibility_type.value} articles with filter={query}")
        articles: List[Article] = []
        cursor = self.articles_collection.find(query).sort("article_order", 1)
        async for doc in cursor:
            try:
                articles.append(Article.model_validate(doc))
            except ModelValidationError as validation_err:
                logger.error(f"Article validation failed for doc {doc.get('_id', 'UNKNOWN')}: {validation_err}")
        return articles

    async def update_visibility(self, article: Article) -> Article:
        update_data = {
            "visibility_type": article.visibility_type.value,
            "restricted_to_classes": list(article.restricted_to_classes),
            "updated_at": article.updated_at or datetime.now(timezone.utc),
        }
        updated_doc = await self.articles_collection.find_one_and_update(
            {"_id": article.id},
            {"$set": update_data},
            return_document=ReturnDocument.AFTER,
        )
        if updated_doc is None:
            raise LookupError(f"Article {article.id} not found")
        logger.info(f"Updated visibility of article {article.id} to {article.visibility_type.value}")
        return Article.model_validate(updated_doc)


class MongoClassDirectory:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.classes_collection = db[settings.CLASSES_COLLECTION]

    async def get_class(self, class_id: str) -> Optional[ClassGroup]:
        doc = await self.classes_collection.find_one({"_id": class_id})
        if doc is None:
            return None
        return ClassGroup.model_validate(doc)
