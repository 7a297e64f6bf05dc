# newsletter_access/services/article_policy.py
"""
Article permission rules.

Permission Rules:
- ADMIN: can view, edit and delete any article, in any state.
- TEACHER: can edit class-restricted articles for a class they teach; never
  public articles; never deletes.
- PARENT/STUDENT: read-only.
- UNKNOWN (unresolved actor): no permission at all.

Unpublished or soft-deleted articles are invisible to everyone but admins.
A class-restricted article with no classes is invisible to everyone but
admins.

The module-level functions are pure over a resolved role and class set and
are what list filtering and the visibility aggregator build on. ArticlePolicy
binds them to a RoleResolver for per-actor checks.
"""

import asyncio
import logging
from typing import AbstractSet, List

from newsletter_access.core.exceptions import PermissionDenied
from newsletter_access.models.article import Article
from newsletter_access.models.enums import Role, ArticleAction, RestrictedViewPolicy
from newsletter_access.models.results import PermissionCheckResult
from newsletter_access.services.role_resolver import RoleResolver

logger = logging.getLogger(__name__)

ALLOWED = PermissionCheckResult(allowed=True)
ROLE_NOT_FOUND = "User role not found"


def _deny(reason: str) -> PermissionCheckResult:
    return PermissionCheckResult(allowed=False, reason=reason)


def restricted_article_visible_to(article: Article, class_ids: AbstractSet[str]) -> bool:
    """True iff the article is class-restricted to at least one of the given classes."""
    if not article.is_class_restricted or not article.restricted_to_classes:
        return False
    return not article.restricted_class_ids.isdisjoint(class_ids)


# --- Pure evaluation ---

def evaluate_view(
    role: Role,
    class_ids: AbstractSet[str],
    article: Article,
    policy: RestrictedViewPolicy = RestrictedViewPolicy.CLASS_MEMBERSHIP,
) -> PermissionCheckResult:
    if role == Role.ADMIN:
        return ALLOWED
    if role == Role.UNKNOWN:
        return _deny(ROLE_NOT_FOUND)
    if not article.is_published:
        return _deny("Article not published")
    if article.is_removed:
        return _deny("Article has been deleted")
    if article.is_public:
        return ALLOWED
    if not article.restricted_to_classes:
        return _deny("Article is restricted but names no classes")
    if policy == RestrictedViewPolicy.ANY_ROLE:
        return ALLOWED
    if restricted_article_visible_to(article, class_ids):
        return ALLOWED
    return _deny(f"{role.value.capitalize()} is not a member of any of the restricted classes")


def evaluate_edit(role: Role, class_ids: AbstractSet[str], article: Article) -> PermissionCheckResult:
    if role == Role.ADMIN:
        return ALLOWED
    if role == Role.TEACHER:
        if article.is_public:
            return _deny("Teachers cannot edit public articles")
        if restricted_article_visible_to(article, class_ids):
            return ALLOWED
        return _deny("Teacher does not teach any of the restricted classes")
    if role == Role.UNKNOWN:
        return _deny(ROLE_NOT_FOUND)
    return _deny(f"{role.value.capitalize()}s cannot edit articles")


def evaluate_delete(role: Role, class_ids: AbstractSet[str], article: Article) -> PermissionCheckResult:
    if role == Role.ADMIN:
        return ALLOWED
    if role == Role.UNKNOWN:
        return _deny(ROLE_NOT_FOUND)
    return _deny("Only admins can delete articles")


def evaluate(
    action: ArticleAction,
    role: Role,
    class_ids: AbstractSet[str],
    article: Article,
    policy: RestrictedViewPolicy = RestrictedViewPolicy.CLASS_MEMBERSHIP,
) -> PermissionCheckResult:
    if action == ArticleAction.VIEW:
        return evaluate_view(role, class_ids, article, policy)
    if action == ArticleAction.EDIT:
        return evaluate_edit(role, class_ids, article)
    return evaluate_delete(role, class_ids, article)


def can_view(role, class_ids, article, policy=RestrictedViewPolicy.CLASS_MEMBERSHIP) -> bool:
    return evaluate_view(role, class_ids, article, policy).allowed


def can_edit(role, class_ids, article) -> bool:
    return evaluate_edit(role, class_ids, article).allowed


def can_delete(role, class_ids, article) -> bool:
    return evaluate_delete(role, class_ids, article).allowed


# --- Actor-bound policy ---

class ArticlePolicy:
    """Per-actor permission checks; one cached role resolution per distinct actor."""

    def __init__(self, resolver: RoleResolver, view_policy: RestrictedViewPolicy = RestrictedViewPolicy.CLASS_MEMBERSHIP):
        self.resolver = resolver
        self.view_policy = view_policy

    async def check_permission(self, actor_id: str, action: ArticleAction, article: Article) -> PermissionCheckResult:
        """Allow flag plus denial reason. Never raises."""
        try:
            role = await self.resolver.resolve_role(actor_id)
            class_ids = await self._class_ids_for(actor_id, role, action)
            return evaluate(action, role, class_ids, article, self.view_policy)
        except Exception as e:
            logger.error(f"Error checking {action.value} permission for actor {actor_id} on article {article.id}: {e}", exc_info=True)
            return _deny(f"Permission check failed: {e}")

    async def _class_ids_for(self, actor_id: str, role: Role, action: ArticleAction) -> AbstractSet[str]:
        # Only resolve the class set the rule for this action actually reads
        if action == ArticleAction.EDIT and role == Role.TEACHER:
            return await self.resolver.resolve_taught_classes(actor_id)
        if (
            action == ArticleAction.VIEW
            and self.view_policy == RestrictedViewPolicy.CLASS_MEMBERSHIP
            and role in (Role.TEACHER, Role.PARENT, Role.STUDENT)
        ):
            return await self.resolver.resolve_viewer_classes(actor_id)
        return frozenset()

    async def can_view(self, actor_id: str, article: Article) -> bool:
        return (await self.check_permission(actor_id, ArticleAction.VIEW, article)).allowed

    async def can_edit(self, actor_id: str, article: Article) -> bool:
        return (await self.check_permission(actor_id, ArticleAction.EDIT, article)).allowed

    async def can_delete(self, actor_id: str, article: Article) -> bool:
        return (await self.check_permission(actor_id, ArticleAction.DELETE, article)).allowed

    async def assert_can_edit(self, actor_id: str, article: Article) -> None:
        await self._assert(actor_id, ArticleAction.EDIT, article)

    async def assert_can_delete(self, actor_id: str, article: Article) -> None:
        await self._assert(actor_id, ArticleAction.DELETE, article)

    async def _assert(self, actor_id: str, action: ArticleAction, article: Article) -> None:
        result = await self.check_permission(actor_id, action, article)
        if result.allowed:
            return
        role = await self.resolver.resolve_role(actor_id)
        reason = f"User with role '{role.value}' cannot {action.value} this article: {result.reason}"
        logger.warning(f"Denied {action.value} on article {article.id} for actor {actor_id}: {result.reason}")
        raise PermissionDenied(role=role, action=action, article_id=article.id, reason=reason)

    async def filter_viewable(self, actor_id: str, articles: List[Article]) -> List[Article]:
        """Articles the actor may view, in input order. All checks run concurrently."""
        allowed = await asyncio.gather(*(self.can_view(actor_id, article) for article in articles))
        return [article for article, ok in zip(articles, allowed) if ok]
