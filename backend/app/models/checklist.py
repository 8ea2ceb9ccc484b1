"""
Checklist database models.

A checklist is one completed audit of a store. It owns an ordered list of
answers whose coefficients are frozen at submission time. Checklists are
never updated after creation.
"""

from sqlalchemy import Column, Integer, String, Text, Float, Date, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import AnswerValue


class Checklist(Base):
    __tablename__ = "checklists"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    document_number = Column(String(50), unique=True, index=True, nullable=False)

    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    audit_date = Column(Date, nullable=False, index=True)
    submitted_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Sum of non-NA coefficients, sum of earned values, derived percentage
    total_coefficient = Column(Float, nullable=False)
    total_earned = Column(Float, nullable=False)
    score_percentage = Column(Float, nullable=False)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    answers = relationship(
        "ChecklistAnswer",
        order_by="ChecklistAnswer.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        back_populates="checklist",
    )
    store = relationship("Store", lazy="joined")
    submitter = relationship("User", lazy="joined")

    @property
    def store_name(self):
        return self.store.store_name if self.store else None

    @property
    def store_code(self):
        return self.store.store_code if self.store else None

    @property
    def submitted_by_name(self):
        return self.submitter.display_name if self.submitter else None

    def __repr__(self):
        return f"<Checklist(id={self.id}, document='{self.document_number}', score={self.score_percentage})>"


class ChecklistAnswer(Base):
    __tablename__ = "checklist_answers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    checklist_id = Column(Integer, ForeignKey("checklists.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)

    answer = Column(Enum(AnswerValue), nullable=False)
    coefficient = Column(Float, nullable=False)
    earned_value = Column(Float, nullable=False)
    comment = Column(Text, nullable=True)
    image_path = Column(String(500), nullable=True)

    checklist = relationship("Checklist", back_populates="answers")
    question = relationship("Question", lazy="joined")

    @property
    def question_text(self):
        return self.question.question_text if self.question else None

    def __repr__(self):
        return f"<ChecklistAnswer(checklist={self.checklist_id}, question={self.question_id}, answer='{self.answer.value}')>"
