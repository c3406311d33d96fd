from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from recipeshare.models.review import Review

logger = logging.getLogger(__name__)


def delete_all_reviews_by_author(db: Session, user_id: str) -> int:
    deleted = (
        db.query(Review)
        .filter(Review.author_user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Deleted %s reviews for user_id=%s", deleted, user_id)
    return int(deleted or 0)
