# newsletter_access/services/access_engine.py
import logging
from typing import Iterable, List, Optional

from newsletter_access.core.config import settings
from newsletter_access.db.ports import ClassDirectory, ContentStore, DirectoryStore
from newsletter_access.models.article import Article
from newsletter_access.models.enums import ArticleAction, RestrictedViewPolicy, VisibilityType
from newsletter_access.models.results import ActorContext, FamilyArticles, PermissionCheckResult
from newsletter_access.services import restrictions
from newsletter_access.services.article_policy import ArticlePolicy
from newsletter_access.services.permission_cache import PermissionCache
from newsletter_access.services.role_resolver import RoleResolver
from newsletter_access.services.visibility import VisibilityAggregator

logger = logging.getLogger(__name__)


class AccessEngine:
    """
    Entry point for the rest of the application.

    One engine is built per request/render together with its PermissionCache;
    see api/deps.py for the FastAPI wiring. The boolean predicates never
    raise, the assert_* guards raise PermissionDenied, the restriction
    methods raise ValidationError and the list builders raise
    DependencyFailure.
    """

    def __init__(
        self,
        directory: DirectoryStore,
        content_store: ContentStore,
        class_directory: ClassDirectory,
        cache: Optional[PermissionCache] = None,
        view_policy: Optional[RestrictedViewPolicy] = None,
        aggregation_timeout: Optional[float] = None,
    ):
        self.directory = directory
        self.content_store = content_store
        self.class_directory = class_directory
        self.cache = cache if cache is not None else PermissionCache()
        self.view_policy = view_policy or settings.RESTRICTED_VIEW_POLICY
        if aggregation_timeout is None:
            aggregation_timeout = settings.AGGREGATION_TIMEOUT_SECONDS

        self.resolver = RoleResolver(directory, self.cache)
        self.policy = ArticlePolicy(self.resolver, self.view_policy)
        self.aggregator = VisibilityAggregator(content_store, directory, class_directory, aggregation_timeout)

    # --- Actor ---

    def bind_actor(self, actor_id: str) -> None:
        self.cache.bind_actor(actor_id)

    async def resolve_context(self, actor_id: str) -> ActorContext:
        return await self.resolver.resolve_context(actor_id)

    # --- Permission checks ---

    async def check_permission(self, actor_id: str, action: ArticleAction, article: Article) -> PermissionCheckResult:
        return await self.policy.check_permission(actor_id, action, article)

    async def can_view(self, actor_id: str, article: Article) -> bool:
        return await self.policy.can_view(actor_id, article)

    async def can_edit(self, actor_id: str, article: Article) -> bool:
        return await self.policy.can_edit(actor_id, article)

    async def can_delete(self, actor_id: str, article: Article) -> bool:
        return await self.policy.can_delete(actor_id, article)

    async def assert_can_edit(self, actor_id: str, article: Article) -> None:
        await self.policy.assert_can_edit(actor_id, article)

    async def assert_can_delete(self, actor_id: str, article: Article) -> None:
        await self.policy.assert_can_delete(actor_id, article)

    async def filter_viewable(self, actor_id: str, articles: List[Article]) -> List[Article]:
        return await self.policy.filter_viewable(actor_id, articles)

    # --- Visible lists ---

    async def visible_items_for_group(self, class_id: str, week_number: str) -> List[Article]:
        return await self.aggregator.visible_items_for_group(class_id, week_number)

    async def visible_items_for_family(self, family_id: str, week_number: str) -> FamilyArticles:
        return await self.aggregator.visible_items_for_family(family_id, week_number)

    async def count_visible_items_for_family(self, family_id: str, week_number: str) -> int:
        return await self.aggregator.count_visible_items_for_family(family_id, week_number)

    # --- Restrictions (unpersisted) ---

    def apply_restriction(self, article: Article, class_ids: Iterable[str]) -> Article:
        return restrictions.apply_restriction(article, class_ids)

    def clear_restriction(self, article: Article) -> Article:
        return restrictions.clear_restriction(article)

    def update_visibility(
        self,
        article: Article,
        visibility_type: VisibilityType,
        class_ids: Optional[Iterable[str]] = None,
    ) -> Article:
        return restrictions.update_visibility(article, visibility_type, class_ids)

    # --- Restrictions (authorized and persisted) ---

    async def restrict_article(self, actor_id: str, article: Article, class_ids: Iterable[str]) -> Article:
        """
        Restrict an article to classes on behalf of an actor and persist it.

        Raises:
            PermissionDenied: if the actor may not edit the article as it is now.
            ValidationError: if no usable class id is given.
        """
        await self.policy.assert_can_edit(actor_id, article)
        updated = restrictions.apply_restriction(article, class_ids)
        saved = await self.content_store.update_visibility(updated)
        logger.info(f"Actor {actor_id} restricted article {article.id} to {updated.restricted_to_classes}")
        return saved

    async def unrestrict_article(self, actor_id: str, article: Article) -> Article:
        """Make an article public on behalf of an actor; no write when it already is."""
        await self.policy.assert_can_edit(actor_id, article)
        updated = restrictions.clear_restriction(article)
        if updated is article:
            return article
        saved = await self.content_store.update_visibility(updated)
        logger.info(f"Actor {actor_id} made article {article.id} public")
        return saved
