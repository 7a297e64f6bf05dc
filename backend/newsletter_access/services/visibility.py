# newsletter_access/services/visibility.py
"""
Visible article lists for a week.

Two viewer contexts are supported:

- A single class: public articles plus articles restricted to that class,
  ordered by article_order.
- A family: public articles plus articles restricted to any class one of
  the family's children is actively enrolled in. Ordered with class
  articles first, older grade first (highest grade year among the
  article's classes the family is in), then article_order; public
  articles come last, by article_order.

Building a list is a two-phase pipeline: every source is fetched and the
results merged into a map keyed by article id (first insert wins, so an
article matching several of the family's classes appears once), then the
merged set is sorted in a single pass. The merge and sort are pure and do
not depend on fetch completion order.

Fetching is all-or-nothing: the first failing fetch cancels the others and
surfaces as DependencyFailure naming the step. No partial list is returned.
"""

import asyncio
import logging
import time
from typing import Any, AbstractSet, Awaitable, Dict, List, Mapping, Optional, Sequence, Tuple

from newsletter_access.core.exceptions import DependencyFailure
from newsletter_access.db.ports import ClassDirectory, ContentStore, DirectoryStore
from newsletter_access.models.article import Article
from newsletter_access.models.class_group import ClassGroup
from newsletter_access.models.enums import AggregationStep
from newsletter_access.models.results import FamilyArticles
from newsletter_access.services.article_policy import restricted_article_visible_to

logger = logging.getLogger(__name__)

# Sort tiers for family ordering
_TIER_GRADED = 0
_TIER_UNGRADED = 1
_TIER_PUBLIC = 2


# --- Phase one: merge ---

def collect_visible(
    public_articles: Sequence[Article],
    restricted_articles: Sequence[Article],
    class_ids: AbstractSet[str],
) -> List[Article]:
    """
    Merge public articles and the restricted articles visible to `class_ids`,
    deduplicated by id. Public articles are inserted first; inserting an id
    that is already present is a no-op.

    Unpublished or deleted rows and restricted rows without classes are
    dropped even if the store returned them.
    """
    merged: Dict[str, Article] = {}
    for article in public_articles:
        if article.is_listed and article.is_public:
            merged.setdefault(article.id, article)
    for article in restricted_articles:
        if article.is_listed and restricted_article_visible_to(article, class_ids):
            merged.setdefault(article.id, article)
    return list(merged.values())


# --- Phase two: order ---

def family_sort_key(
    article: Article,
    class_ids: AbstractSet[str],
    grade_years: Mapping[str, int],
) -> Tuple[int, int, int, str]:
    if article.is_class_restricted:
        grades = [
            grade_years[class_id]
            for class_id in article.restricted_to_classes
            if class_id in class_ids and class_id in grade_years
        ]
        if grades:
            return (_TIER_GRADED, -max(grades), article.article_order, article.id)
        return (_TIER_UNGRADED, 0, article.article_order, article.id)
    return (_TIER_PUBLIC, 0, article.article_order, article.id)


def order_for_family(
    articles: Sequence[Article],
    class_ids: AbstractSet[str],
    grade_years: Mapping[str, int],
) -> List[Article]:
    return sorted(articles, key=lambda article: family_sort_key(article, class_ids, grade_years))


def order_for_class(articles: Sequence[Article]) -> List[Article]:
    return sorted(articles, key=lambda article: (article.article_order, article.id))


# --- Aggregator ---

class VisibilityAggregator:

    def __init__(
        self,
        content_store: ContentStore,
        directory: DirectoryStore,
        class_directory: ClassDirectory,
        timeout_seconds: Optional[float] = None,
    ):
        self.content_store = content_store
        self.directory = directory
        self.class_directory = class_directory
        self.timeout_seconds = timeout_seconds

    async def visible_items_for_group(self, class_id: str, week_number: str) -> List[Article]:
        """Articles of the week visible to one class, ordered by article_order."""
        logger.info(f"Building visible articles for class {class_id}, week {week_number}")
        fetched = await self._fetch_all(
            [
                (AggregationStep.PUBLIC_FETCH, self.content_store.query_public_articles(week_number)),
                (AggregationStep.RESTRICTED_FETCH, self.content_store.query_restricted_articles(week_number)),
            ],
            self._deadline(),
        )
        merged = collect_visible(
            fetched[AggregationStep.PUBLIC_FETCH] or [],
            fetched[AggregationStep.RESTRICTED_FETCH] or [],
            {class_id},
        )
        return order_for_class(merged)

    async def visible_items_for_family(self, family_id: str, week_number: str) -> FamilyArticles:
        """
        Articles of the week visible to a family with children in one or more classes.

        Raises:
            DependencyFailure: if the enrollment, public, restricted or class
                lookup fails (or the configured timeout expires).
        """
        started = time.perf_counter()
        deadline = self._deadline()
        logger.info(f"Building visible articles for family {family_id}, week {week_number}")

        fetched = await self._fetch_all(
            [
                (AggregationStep.ENROLLMENT_FETCH, self.directory.get_active_enrollments(family_id)),
                (AggregationStep.PUBLIC_FETCH, self.content_store.query_public_articles(week_number)),
                (AggregationStep.RESTRICTED_FETCH, self.content_store.query_restricted_articles(week_number)),
            ],
            deadline,
        )
        class_ids = frozenset(fetched[AggregationStep.ENROLLMENT_FETCH] or ())

        classes_fetched = await self._fetch_all(
            [(AggregationStep.CLASS_FETCH, self._load_classes(class_ids))],
            deadline,
        )
        classes: List[ClassGroup] = classes_fetched[AggregationStep.CLASS_FETCH]
        grade_years = {group.id: group.grade_year for group in classes}

        merged = collect_visible(
            fetched[AggregationStep.PUBLIC_FETCH] or [],
            fetched[AggregationStep.RESTRICTED_FETCH] or [],
            class_ids,
        )
        articles = order_for_family(merged, class_ids, grade_years)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Family {family_id} week {week_number}: {len(articles)} visible articles "
            f"across {len(class_ids)} classes in {elapsed_ms:.1f}ms"
        )
        return FamilyArticles(
            articles=articles,
            class_ids=class_ids,
            classes=classes,
            total_count=len(articles),
            execution_time_ms=elapsed_ms,
        )

    async def count_visible_items_for_family(self, family_id: str, week_number: str) -> int:
        result = await self.visible_items_for_family(family_id, week_number)
        return result.total_count

    # --- Fetch helpers ---

    async def _load_classes(self, class_ids: AbstractSet[str]) -> List[ClassGroup]:
        ordered_ids = sorted(class_ids)
        found = await asyncio.gather(*(self.class_directory.get_class(class_id) for class_id in ordered_ids))
        classes = []
        for class_id, group in zip(ordered_ids, found):
            if group is None:
                logger.warning(f"Class {class_id} not found in class directory; its articles sort without a grade year.")
                continue
            classes.append(group)
        classes.sort(key=lambda group: (-group.grade_year, group.id))
        return classes

    def _deadline(self) -> Optional[float]:
        if self.timeout_seconds is None:
            return None
        return asyncio.get_running_loop().time() + self.timeout_seconds

    async def _fetch_all(
        self,
        steps: List[Tuple[AggregationStep, Awaitable[Any]]],
        deadline: Optional[float],
    ) -> Dict[AggregationStep, Any]:
        """
        Run the fetches concurrently and return their results by step.

        On the first failure every other fetch is cancelled and a
        DependencyFailure for the failed step is raised (the earliest
        declared step wins when several have failed). Cancellation of the
        caller cancels every fetch.
        """
        order = [step for step, _ in steps]
        tasks = {asyncio.ensure_future(awaitable): step for step, awaitable in steps}
        timeout = None
        if deadline is not None:
            timeout = max(0.0, deadline - asyncio.get_running_loop().time())

        try:
            done, pending = await asyncio.wait(list(tasks), timeout=timeout, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            await _cancel_all(tasks)
            raise

        # A fetch that ended cancelled (not by this caller) counts as failed
        failed = [task for task in done if task.cancelled() or task.exception() is not None]
        if failed or pending:
            await _cancel_all(pending)
            if failed:
                task = min(failed, key=lambda t: order.index(tasks[t]))
                step = tasks[task]
                if task.cancelled():
                    logger.error(f"Aggregation aborted: {step.value} was cancelled")
                    raise DependencyFailure(step)
                cause = task.exception()
                logger.error(f"Aggregation aborted: {step.value} failed: {cause}")
                raise DependencyFailure(step, cause) from cause
            step = min((tasks[task] for task in pending), key=order.index)
            logger.error(f"Aggregation aborted: {step.value} timed out after {self.timeout_seconds}s")
            raise DependencyFailure(step, timed_out=True)

        return {step: task.result() for task, step in tasks.items()}


async def _cancel_all(tasks) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
