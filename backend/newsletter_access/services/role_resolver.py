# newsletter_access/services/role_resolver.py
import logging
from typing import FrozenSet

from newsletter_access.db.ports import DirectoryStore
from newsletter_access.models.enums import Role
from newsletter_access.models.results import ActorContext
from newsletter_access.services.permission_cache import (
    PermissionCache,
    ROLE,
    TAUGHT_CLASSES,
    VIEWER_CLASSES,
)

logger = logging.getLogger(__name__)


class RoleResolver:
    """
    Resolves actors to roles and class sets through the directory store.

    Lookups never raise: a failed role lookup yields Role.UNKNOWN and a failed
    class lookup an empty set (fail-closed). Successful results are cached per
    actor in the given PermissionCache; failures are not.
    """

    def __init__(self, directory: DirectoryStore, cache: PermissionCache):
        self.directory = directory
        self.cache = cache

    async def resolve_role(self, actor_id: str) -> Role:
        if not actor_id:
            return Role.UNKNOWN
        try:
            return await self.cache.get_or_load(ROLE, actor_id, lambda: self._load_role(actor_id))
        except Exception as e:
            logger.warning(f"Role lookup failed for actor {actor_id}, treating as unknown: {e}")
            return Role.UNKNOWN

    async def resolve_taught_classes(self, teacher_id: str) -> FrozenSet[str]:
        if not teacher_id:
            return frozenset()
        try:
            return await self.cache.get_or_load(
                TAUGHT_CLASSES, teacher_id, lambda: self._load_taught_classes(teacher_id)
            )
        except Exception as e:
            logger.warning(f"Taught class lookup failed for teacher {teacher_id}, treating as none: {e}")
            return frozenset()

    async def resolve_viewer_classes(self, actor_id: str) -> FrozenSet[str]:
        """
        Classes whose restricted articles the actor may see under the class
        membership policy: taught classes for teachers, the active enrollments
        across all of a parent's families, a student's own active classes.
        Empty for every other role.
        """
        role = await self.resolve_role(actor_id)
        if role == Role.TEACHER:
            return await self.resolve_taught_classes(actor_id)
        if role not in (Role.PARENT, Role.STUDENT):
            return frozenset()
        try:
            return await self.cache.get_or_load(
                VIEWER_CLASSES, actor_id, lambda: self._load_viewer_classes(actor_id, role)
            )
        except Exception as e:
            logger.warning(f"Viewer class lookup failed for {role.value} {actor_id}, treating as none: {e}")
            return frozenset()

    async def resolve_context(self, actor_id: str) -> ActorContext:
        role = await self.resolve_role(actor_id)
        class_ids = await self.resolve_viewer_classes(actor_id)
        return ActorContext(actor_id=actor_id or "", role=role, class_ids=class_ids)

    # --- Directory loaders ---

    async def _load_role(self, actor_id: str) -> Role:
        stored = await self.directory.get_role(actor_id)
        role = Role.parse(stored)
        if stored is None:
            logger.info(f"No role found for actor {actor_id}")
        elif role == Role.UNKNOWN:
            logger.warning(f"Unrecognised role '{stored}' for actor {actor_id}")
        return role

    async def _load_taught_classes(self, teacher_id: str) -> FrozenSet[str]:
        return frozenset(await self.directory.get_taught_classes(teacher_id) or ())

    async def _load_viewer_classes(self, actor_id: str, role: Role) -> FrozenSet[str]:
        if role == Role.STUDENT:
            return frozenset(await self.directory.get_student_classes(actor_id) or ())
        class_ids = set()
        for family_id in await self.directory.get_parent_families(actor_id) or ():
            class_ids.update(await self.directory.get_active_enrollments(family_id) or ())
        return frozenset(class_ids)
