# newsletter_access/services/restrictions.py
"""
The only write path for article visibility.

    public  --apply_restriction(classes)-->  class_restricted(classes)
    class_restricted  --clear_restriction-->  public

A class-restricted article produced here always names at least one class.
Authorization is not checked here; callers compose these with
ArticlePolicy.assert_can_edit (see AccessEngine.restrict_article).
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from newsletter_access.core.exceptions import ValidationError
from newsletter_access.models.article import Article
from newsletter_access.models.enums import VisibilityType

logger = logging.getLogger(__name__)

EMPTY_RESTRICTION = "at least one group required"


def normalize_class_ids(class_ids: Optional[Iterable[str]]) -> List[str]:
    """Strip ids, drop blanks and duplicates; first occurrence order is kept."""
    if isinstance(class_ids, str):
        # A single id, not an iterable of characters
        class_ids = [class_ids]
    seen = []
    for class_id in class_ids or ():
        if class_id is None:
            continue
        cleaned = str(class_id).strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def apply_restriction(article: Article, class_ids: Iterable[str]) -> Article:
    """
    Restrict the article to the given classes.

    Returns:
        A copy of the article with visibility_type class_restricted.

    Raises:
        ValidationError: if no usable class id is given.
    """
    restricted_to = normalize_class_ids(class_ids)
    if not restricted_to:
        logger.warning(f"Rejected restriction of article {article.id} to an empty class list")
        raise ValidationError(EMPTY_RESTRICTION)
    logger.debug(f"Restricting article {article.id} to classes {restricted_to}")
    return article.model_copy(update={
        "visibility_type": VisibilityType.CLASS_RESTRICTED,
        "restricted_to_classes": restricted_to,
        "updated_at": datetime.now(timezone.utc),
    })


def clear_restriction(article: Article) -> Article:
    """Make the article public. Clearing an already public article returns it unchanged."""
    if article.is_public and not article.restricted_to_classes:
        return article
    logger.debug(f"Clearing class restriction on article {article.id}")
    return article.model_copy(update={
        "visibility_type": VisibilityType.PUBLIC,
        "restricted_to_classes": [],
        "updated_at": datetime.now(timezone.utc),
    })


def update_visibility(
    article: Article,
    visibility_type: VisibilityType,
    class_ids: Optional[Iterable[str]] = None,
) -> Article:
    """Route a visibility change from an edit form to the matching transition."""
    try:
        visibility_type = VisibilityType(visibility_type)
    except ValueError as e:
        raise ValidationError(f"Unknown visibility type '{visibility_type}'") from e
    if visibility_type == VisibilityType.CLASS_RESTRICTED:
        return apply_restriction(article, class_ids or ())
    return clear_restriction(article)
