from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from recipeshare.models.cookbook import Cookbook

logger = logging.getLogger(__name__)


def get_cookbook(db: Session, user_id: str) -> Cookbook | None:
    return db.query(Cookbook).filter(Cookbook.user_id == user_id).first()


def create_cookbook(db: Session, user_id: str) -> Cookbook:
    """
    Creates the personal (private) cookbook for a user.
    Idempotent: an existing cookbook is returned unchanged.
    """
    existing = get_cookbook(db, user_id)
    if existing is not None:
        return existing

    cookbook = Cookbook(user_id=user_id, public_shared=False)
    db.add(cookbook)
    db.commit()
    db.refresh(cookbook)
    logger.info("Created cookbook id=%s for user_id=%s", cookbook.id, user_id)
    return cookbook


def delete_cookbook(db: Session, user_id: str) -> int:
    deleted = (
        db.query(Cookbook)
        .filter(Cookbook.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(deleted or 0)
