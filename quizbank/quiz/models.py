"""
Database models for quizzes and quiz attempts.

A quiz is an ordered list of sections; each section holds an ordered list
of bank questions. A question appears in at most one section of a quiz.
"""
from datetime import datetime
from decimal import Decimal
from quizbank import db


class Quiz(db.Model):
    """
    Model for an assembled quiz.

    ``total_duration`` (minutes) is set by the author; ``total_marks`` is
    recomputed from the sections on every change.
    """
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    subject = db.Column(db.String(255), nullable=True)
    batch = db.Column(db.String(255), nullable=True)
    unit = db.Column(db.String(255), nullable=True)
    instructions = db.Column(db.JSON, nullable=False, default=list)
    total_duration = db.Column(db.Integer, nullable=False, default=0)
    total_marks = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='SET NULL'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    creator = db.relationship("User", foreign_keys=[created_by])
    sections = db.relationship(
        "QuizSection", backref="quiz", cascade="all, delete-orphan",
        order_by="QuizSection.order_index",
    )
    attempts = db.relationship("QuizAttempt", backref="quiz", lazy="dynamic", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Quiz {self.id}: {self.title}>"

    def get_question_count(self) -> int:
        return sum(len(section.questions) for section in self.sections)

    def compute_total_marks(self) -> Decimal:
        """Σ section marks × number of section questions."""
        return sum(
            (Decimal(str(section.marks or 0)) * len(section.questions) for section in self.sections),
            Decimal('0'),
        )

    def to_summary_dict(self) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'subject': self.subject,
            'batch': self.batch,
            'unit': self.unit,
            'total_duration': self.total_duration,
            'total_marks': float(self.total_marks or 0),
            'section_count': len(self.sections),
            'question_count': self.get_question_count(),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_dict(self, include_answers: bool = True) -> dict:
        data = self.to_summary_dict()
        data['instructions'] = list(self.instructions or [])
        data['created_by'] = self.created_by
        data['sections'] = [section.to_dict(include_answers) for section in self.sections]
        return data


class QuizSection(db.Model):
    """
    Model for a quiz section.

    ``marks`` are awarded per correct answer and ``negative_marks``
    deducted per wrong answer. ``auto_generate`` keeps the generator
    settings that produced the section, if any.
    """
    __tablename__ = "quiz_sections"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    instructions = db.Column(db.JSON, nullable=False, default=list)
    duration = db.Column(db.Integer, nullable=True)  # Minutes, informational
    timer_enabled = db.Column(db.Boolean, nullable=False, default=False)
    marks = db.Column(db.Numeric(6, 2), nullable=False, default=1)
    negative_marks = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    order_index = db.Column(db.Integer, nullable=False, default=0, index=True)
    auto_generate = db.Column(db.JSON, nullable=True)

    questions = db.relationship(
        "SectionQuestion", backref="section", cascade="all, delete-orphan",
        order_by="SectionQuestion.order_index",
    )

    __table_args__ = (
        db.Index('ix_quiz_sections_quiz_order', 'quiz_id', 'order_index'),
    )

    def __repr__(self) -> str:
        return f"<QuizSection {self.id}: {self.name}>"

    def get_question_ids(self) -> list[int]:
        return [entry.question_id for entry in self.questions]

    def to_dict(self, include_answers: bool = True) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'instructions': list(self.instructions or []),
            'duration': self.duration,
            'timer_enabled': self.timer_enabled,
            'marks': float(self.marks or 0),
            'negative_marks': float(self.negative_marks or 0),
            'order_index': self.order_index,
            'auto_generate': self.auto_generate,
            'questions': [entry.question.to_dict(include_answers) for entry in self.questions],
        }


class SectionQuestion(db.Model):
    """Ordered membership of a bank question in a section."""
    __tablename__ = "quiz_section_questions"

    id = db.Column(db.Integer, primary_key=True)
    section_id = db.Column(db.Integer, db.ForeignKey("quiz_sections.id", ondelete='CASCADE'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id", ondelete='CASCADE'), nullable=False, index=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    question = db.relationship("Question")

    __table_args__ = (
        db.UniqueConstraint('section_id', 'question_id', name='uq_section_question'),
        db.Index('ix_section_questions_section_order', 'section_id', 'order_index'),
    )

    def __repr__(self) -> str:
        return f"<SectionQuestion section={self.section_id} question={self.question_id}>"


class QuizAttempt(db.Model):
    """
    Model for a user's attempt at a quiz.

    Status goes instructions → in_progress → submitted. The timer starts
    when the instructions are accepted.
    """
    __tablename__ = "quiz_attempts"

    STATUS_INSTRUCTIONS = 'instructions'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_SUBMITTED = 'submitted'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='CASCADE'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_INSTRUCTIONS, index=True)
    current_question_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    started_at = db.Column(db.DateTime, nullable=True)
    submitted_at = db.Column(db.DateTime, nullable=True)
    auto_submitted = db.Column(db.Boolean, nullable=False, default=False)
    score = db.Column(db.Numeric(10, 2), nullable=True)
    max_score = db.Column(db.Numeric(10, 2), nullable=True)

    # Relationships
    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("quiz_attempts", lazy="dynamic"))
    responses = db.relationship("QuestionResponse", backref="attempt", lazy="dynamic", cascade="all, delete-orphan")

    __table_args__ = (
        db.Index('ix_quiz_attempts_quiz_user', 'quiz_id', 'user_id'),
        db.Index('ix_quiz_attempts_user_status', 'user_id', 'status'),
    )

    def __repr__(self) -> str:
        return f"<QuizAttempt {self.id}: User {self.user_id}, Quiz {self.quiz_id}>"

    @property
    def is_submitted(self) -> bool:
        return self.status == self.STATUS_SUBMITTED


class QuestionResponse(db.Model):
    """Per-question state of an attempt."""
    __tablename__ = "quiz_question_responses"

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey("quiz_attempts.id", ondelete='CASCADE'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id", ondelete='CASCADE'), nullable=False, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey("quiz_sections.id", ondelete='CASCADE'), nullable=False)
    selected_answers = db.Column(db.JSON, nullable=False, default=list)
    visited = db.Column(db.Boolean, nullable=False, default=False)
    answered = db.Column(db.Boolean, nullable=False, default=False)
    marked_for_review = db.Column(db.Boolean, nullable=False, default=False)
    is_correct = db.Column(db.Boolean, nullable=True)  # Set on submit; None when unanswered
    marks_awarded = db.Column(db.Numeric(6, 2), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('attempt_id', 'question_id', name='uq_attempt_question'),
    )

    def __repr__(self) -> str:
        return f"<QuestionResponse {self.id}: Question {self.question_id}>"

    def to_status_dict(self) -> dict:
        return {
            'question_id': self.question_id,
            'visited': self.visited,
            'answered': self.answered,
            'marked_for_review': self.marked_for_review,
            'selected_answers': list(self.selected_answers or []),
        }
