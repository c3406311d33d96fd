from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text, func

from recipeshare.core.base import Base


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("difficulty_evaluation BETWEEN 0 AND 5", name="ck_reviews_difficulty_range"),
        CheckConstraint("taste_evaluation BETWEEN 0 AND 5", name="ck_reviews_taste_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    meal_db_id = Column(Integer, nullable=False, index=True)
    author_user_id = Column(String(32), nullable=False, index=True)

    difficulty_evaluation = Column(Integer, nullable=False)
    taste_evaluation = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    execution_date = Column(DateTime(timezone=True), nullable=False)
    review_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
