"""
Database models for the question bank.

Supports three question types:
- MCQ: four options, exactly one correct letter
- MMCQ: four options, one or more correct letters
- Numeric: no options, a single numeric answer
"""
from datetime import datetime
from quizbank import db
from quizbank.common.vocabulary import OPTION_LETTERS, OPTION_QUESTION_TYPES


TAG_FIELDS = ('exam_type', 'subject', 'chapter', 'topic', 'difficulty_level', 'question_type', 'source')


class Question(db.Model):
    """
    Model for a tagged question in the bank.

    Tags are stored by name, mirroring the tag hierarchy
    (exam type → subject → chapter → topic).
    """
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    question_text = db.Column(db.Text, nullable=False)
    option_a = db.Column(db.Text, nullable=True)
    option_b = db.Column(db.Text, nullable=True)
    option_c = db.Column(db.Text, nullable=True)
    option_d = db.Column(db.Text, nullable=True)
    # Option letters for MCQ/MMCQ, a single number (as text) for Numeric
    correct_answers = db.Column(db.JSON, nullable=False, default=list)
    explanation = db.Column(db.Text, nullable=True)

    # Tags
    exam_type = db.Column(db.String(255), nullable=False, index=True)
    subject = db.Column(db.String(255), nullable=False, index=True)
    chapter = db.Column(db.String(255), nullable=False, index=True)
    topic = db.Column(db.String(255), nullable=False, index=True)
    difficulty_level = db.Column(db.String(10), nullable=False, index=True)
    question_type = db.Column(db.String(10), nullable=False, index=True)
    source = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    creator = db.relationship("User", foreign_keys=[created_by])

    __table_args__ = (
        db.Index('ix_questions_exam_subject_chapter', 'exam_type', 'subject', 'chapter'),
    )

    def __repr__(self) -> str:
        return f"<Question {self.id}: {self.question_type}>"

    @property
    def tags(self) -> dict:
        return {field: getattr(self, field) for field in TAG_FIELDS}

    def get_options(self) -> dict:
        """Options keyed by letter; empty for Numeric questions."""
        if self.question_type not in OPTION_QUESTION_TYPES:
            return {}
        return {letter: getattr(self, f"option_{letter.lower()}") for letter in OPTION_LETTERS}

    def check_answer(self, selected_answers, tolerance: float = 0.0) -> bool:
        """
        Check a response against the correct answers.

        Grading is all-or-nothing: option questions need exactly the set of
        correct letters, numeric questions a value within ``tolerance``.

        Args:
            selected_answers: Letters picked, or a one-element list with the numeric value
            tolerance: Absolute tolerance for numeric answers

        Returns:
            True if correct, False otherwise
        """
        if not selected_answers:
            return False

        if self.question_type in OPTION_QUESTION_TYPES:
            selected = {str(answer).strip().upper() for answer in selected_answers}
            correct = {str(answer).strip().upper() for answer in self.correct_answers or []}
            return bool(correct) and selected == correct

        if self.question_type == 'Numeric':
            if len(selected_answers) != 1 or not self.correct_answers:
                return False
            try:
                given = float(str(selected_answers[0]).strip())
                expected = float(str(self.correct_answers[0]).strip())
            except (TypeError, ValueError):
                return False
            return abs(given - expected) <= tolerance

        return False

    def get_used_in_quizzes(self) -> list:
        """Quizzes whose sections contain this question, by title order."""
        from quizbank.quiz.models import Quiz, QuizSection, SectionQuestion
        return (
            Quiz.query.join(QuizSection, QuizSection.quiz_id == Quiz.id)
            .join(SectionQuestion, SectionQuestion.section_id == QuizSection.id)
            .filter(SectionQuestion.question_id == self.id)
            .distinct()
            .order_by(Quiz.title)
            .all()
        )

    def to_dict(self, include_answers: bool = True, include_usage: bool = False) -> dict:
        data = {
            'id': self.id,
            'question_text': self.question_text,
            'option_a': self.option_a,
            'option_b': self.option_b,
            'option_c': self.option_c,
            'option_d': self.option_d,
            'tags': self.tags,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_answers:
            data['correct_answers'] = list(self.correct_answers or [])
            data['explanation'] = self.explanation
        if include_usage:
            data['used_in_quizzes'] = [
                {'id': quiz.id, 'title': quiz.title} for quiz in self.get_used_in_quizzes()
            ]
        return data
