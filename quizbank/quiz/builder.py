"""
Quiz assembly: quizzes, sections and the questions placed in them.

A question may sit in at most one section of a quiz. ``total_marks`` is
recomputed after every change; ``total_duration`` is whatever the author set.
"""
from decimal import Decimal, InvalidOperation

from flask import current_app

from quizbank import db
from quizbank.questions.models import Question
from quizbank.quiz.models import Quiz, QuizSection, SectionQuestion
from quizbank.security import sanitize_input


class QuizBuilderError(Exception):
    """Raised when a quiz change is invalid or not allowed."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def get_quiz_or_error(quiz_id: int) -> Quiz:
    quiz = db.session.get(Quiz, quiz_id)
    if not quiz:
        raise QuizBuilderError('Quiz not found', 404)
    return quiz


def check_author(quiz: Quiz, user) -> None:
    if quiz.created_by != user.id:
        raise QuizBuilderError('Only the author can modify this quiz', 403)


def get_section_or_error(quiz: Quiz, section_id: int) -> QuizSection:
    section = next((section for section in quiz.sections if section.id == section_id), None)
    if section is None:
        raise QuizBuilderError('Section not found', 404)
    return section


def _parse_instructions(value, name: str = 'instructions') -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.splitlines()
    if not isinstance(value, list):
        raise QuizBuilderError(f'{name} must be a list of strings')
    items = [sanitize_input(item) for item in value]
    return [item for item in items if item]


def _parse_minutes(value, name: str, allow_none: bool = False) -> int | None:
    if value is None or value == '':
        if allow_none:
            return None
        raise QuizBuilderError(f'{name} is required')
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        raise QuizBuilderError(f'{name} must be a whole number of minutes')
    if minutes < 0:
        raise QuizBuilderError(f'{name} cannot be negative')
    return minutes


def _parse_marks(value, name: str) -> Decimal:
    try:
        marks = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise QuizBuilderError(f'Invalid numeric value for {name}')
    if not marks.is_finite() or marks < 0:
        raise QuizBuilderError(f'{name} must be zero or more')
    return marks


def get_used_questions(quiz: Quiz, current_section_id: int | None = None) -> set[int]:
    """Question ids placed in the sections of ``quiz`` other than ``current_section_id``."""
    used = set()
    for section in quiz.sections:
        if section.id != current_section_id:
            used.update(section.get_question_ids())
    return used


def get_questions_in_other_quizzes(quiz_id: int | None = None) -> set[int]:
    """Question ids placed in any quiz other than ``quiz_id``."""
    query = (
        db.session.query(SectionQuestion.question_id)
        .join(QuizSection, QuizSection.id == SectionQuestion.section_id)
    )
    if quiz_id is not None:
        query = query.filter(QuizSection.quiz_id != quiz_id)
    return {question_id for (question_id,) in query.distinct().all()}


def recompute_totals(quiz: Quiz) -> None:
    for index, section in enumerate(quiz.sections):
        section.order_index = index
    quiz.total_marks = quiz.compute_total_marks()


def _load_questions(question_ids) -> list[Question]:
    if not isinstance(question_ids, list):
        raise QuizBuilderError('question_ids must be a list')
    try:
        ids = [int(question_id) for question_id in question_ids]
    except (TypeError, ValueError):
        raise QuizBuilderError('question_ids must be a list of question ids')
    if len(set(ids)) != len(ids):
        raise QuizBuilderError('A question can only appear once in a section')

    found = {question.id: question for question in Question.query.filter(Question.id.in_(ids)).all()} if ids else {}
    missing = [question_id for question_id in ids if question_id not in found]
    if missing:
        raise QuizBuilderError(f"Questions not found: {', '.join(map(str, missing))}", 404)
    return [found[question_id] for question_id in ids]


def _fill_section(section: QuizSection, questions) -> None:
    """Set the section's questions in order, keeping the rows of questions that stay."""
    existing = {entry.question_id: entry for entry in section.questions}
    entries = []
    for index, question in enumerate(questions):
        entry = existing.get(question.id) or SectionQuestion(question=question, question_id=question.id)
        entry.order_index = index
        entries.append(entry)
    section.questions = entries


def _apply_section_fields(section: QuizSection, data: dict, default_name: str | None = None) -> None:
    if 'name' in data or default_name is not None:
        name = sanitize_input(data.get('name')) or default_name
        if not name:
            raise QuizBuilderError('Section name is required')
        section.name = name
    if 'instructions' in data:
        section.instructions = _parse_instructions(data.get('instructions'), 'Section instructions')
    if 'duration' in data:
        section.duration = _parse_minutes(data.get('duration'), 'Section duration', allow_none=True)
    if 'timer_enabled' in data:
        section.timer_enabled = bool(data.get('timer_enabled'))
    if 'marks' in data:
        section.marks = _parse_marks(data.get('marks'), 'marks')
    if 'negative_marks' in data:
        section.negative_marks = _parse_marks(data.get('negative_marks'), 'negative_marks')


def _new_section(quiz: Quiz, data: dict) -> QuizSection:
    section = QuizSection(
        name='',
        instructions=[],
        timer_enabled=False,
        marks=Decimal('1'),
        negative_marks=Decimal('0'),
        order_index=len(quiz.sections),
    )
    _apply_section_fields(section, data, default_name=f"Section {len(quiz.sections) + 1}")
    if data.get('auto_generate') is not None:
        section.auto_generate = data['auto_generate']
    return section


def create_quiz(data: dict, user_id: int) -> Quiz:
    """
    Create a quiz, optionally with sections.

    Each section entry may carry ``question_ids`` for its manual selection.
    """
    title = sanitize_input(data.get('title'))
    if not title:
        raise QuizBuilderError('Please enter a quiz title')

    quiz = Quiz(
        title=title,
        subject=sanitize_input(data.get('subject')) or None,
        batch=sanitize_input(data.get('batch')) or None,
        unit=sanitize_input(data.get('unit')) or None,
        instructions=_parse_instructions(data.get('instructions')),
        total_duration=_parse_minutes(data.get('total_duration', 0), 'total_duration'),
        total_marks=Decimal('0'),
        created_by=user_id,
    )
    sections = data.get('sections') or []
    if not isinstance(sections, list):
        raise QuizBuilderError('sections must be a list')

    placed = set()
    for section_data in sections:
        section = _new_section(quiz, section_data)
        questions = _load_questions(section_data.get('question_ids') or [])
        clashes = placed.intersection(question.id for question in questions)
        if clashes:
            raise QuizBuilderError(
                f"Questions already used in another section: {', '.join(map(str, sorted(clashes)))}", 409
            )
        placed.update(question.id for question in questions)
        _fill_section(section, questions)
        quiz.sections.append(section)

    recompute_totals(quiz)
    db.session.add(quiz)
    db.session.commit()
    current_app.logger.info(f"Quiz {quiz.id} created by user {user_id} with {len(quiz.sections)} section(s)")
    return quiz


def update_quiz(quiz: Quiz, data: dict) -> Quiz:
    if 'title' in data:
        title = sanitize_input(data.get('title'))
        if not title:
            raise QuizBuilderError('Please enter a quiz title')
        quiz.title = title
    for field in ('subject', 'batch', 'unit'):
        if field in data:
            setattr(quiz, field, sanitize_input(data.get(field)) or None)
    if 'instructions' in data:
        quiz.instructions = _parse_instructions(data.get('instructions'))
    if 'total_duration' in data:
        quiz.total_duration = _parse_minutes(data.get('total_duration'), 'total_duration')
    recompute_totals(quiz)
    db.session.commit()
    current_app.logger.info(f"Quiz {quiz.id} updated")
    return quiz


def delete_quiz(quiz: Quiz) -> None:
    quiz_id = quiz.id
    db.session.delete(quiz)
    db.session.commit()
    current_app.logger.info(f"Quiz {quiz_id} deleted")


def duplicate_quiz(quiz: Quiz, user_id: int) -> Quiz:
    """Deep copy of a quiz and its sections, pointing at the same questions."""
    copy = Quiz(
        title=f"{quiz.title} (Copy)",
        subject=quiz.subject,
        batch=quiz.batch,
        unit=quiz.unit,
        instructions=list(quiz.instructions or []),
        total_duration=quiz.total_duration,
        total_marks=Decimal('0'),
        created_by=user_id,
    )
    for section in quiz.sections:
        section_copy = QuizSection(
            name=section.name,
            instructions=list(section.instructions or []),
            duration=section.duration,
            timer_enabled=section.timer_enabled,
            marks=section.marks,
            negative_marks=section.negative_marks,
            order_index=section.order_index,
            auto_generate=section.auto_generate,
        )
        _fill_section(section_copy, [entry.question for entry in section.questions])
        copy.sections.append(section_copy)

    recompute_totals(copy)
    db.session.add(copy)
    db.session.commit()
    current_app.logger.info(f"Quiz {quiz.id} duplicated as {copy.id}")
    return copy


def add_section(quiz: Quiz, data: dict) -> QuizSection:
    section = _new_section(quiz, data)
    question_ids = data.get('question_ids')
    quiz.sections.append(section)
    if question_ids:
        set_section_questions(quiz, section, question_ids, commit=False)
    recompute_totals(quiz)
    db.session.commit()
    current_app.logger.info(f"Section {section.id} added to quiz {quiz.id}")
    return section


def update_section(quiz: Quiz, section: QuizSection, data: dict) -> QuizSection:
    _apply_section_fields(section, data)
    recompute_totals(quiz)
    db.session.commit()
    return section


def remove_section(quiz: Quiz, section: QuizSection) -> None:
    quiz.sections.remove(section)
    recompute_totals(quiz)
    db.session.commit()
    current_app.logger.info(f"Section removed from quiz {quiz.id}")


def set_section_questions(quiz: Quiz, section: QuizSection, question_ids, commit: bool = True) -> QuizSection:
    """Replace the manual selection of a section, in the given order."""
    questions = _load_questions(question_ids)
    used = get_used_questions(quiz, section.id)
    clashes = sorted(question.id for question in questions if question.id in used)
    if clashes:
        raise QuizBuilderError(
            f"Questions already used in another section: {', '.join(map(str, clashes))}", 409
        )
    _fill_section(section, questions)
    if commit:
        recompute_totals(quiz)
        db.session.commit()
    return section


def add_question(quiz: Quiz, section: QuizSection, question_id: int) -> QuizSection:
    ids = section.get_question_ids()
    if question_id in ids:
        raise QuizBuilderError('Question is already in this section', 409)
    return set_section_questions(quiz, section, ids + [question_id])


def remove_question(quiz: Quiz, section: QuizSection, question_id: int) -> QuizSection:
    ids = section.get_question_ids()
    if question_id not in ids:
        raise QuizBuilderError('Question is not in this section', 404)
    ids.remove(question_id)
    return set_section_questions(quiz, section, ids)


def replace_question(quiz: Quiz, section: QuizSection, old_question_id: int, new_question_id: int) -> QuizSection:
    """Swap one question for another, keeping its position."""
    ids = section.get_question_ids()
    if old_question_id not in ids:
        raise QuizBuilderError('Question is not in this section', 404)
    if new_question_id in ids:
        raise QuizBuilderError('Question is already in this section', 409)
    ids[ids.index(old_question_id)] = new_question_id
    return set_section_questions(quiz, section, ids)


def apply_generated_sections(quiz: Quiz, generated, replace_section: QuizSection | None = None) -> list[QuizSection]:
    """
    Store generated sections on a quiz.

    Sections are appended, unless ``replace_section`` is given: it then takes
    the first generated section's content and keeps its id and position.
    """
    if replace_section is not None:
        result = generated[0]
        replace_section.name = result.name
        replace_section.timer_enabled = result.timer_enabled
        replace_section.marks = Decimal(str(result.marks))
        replace_section.negative_marks = Decimal(str(result.negative_marks))
        replace_section.auto_generate = result.auto_generate
        _fill_section(replace_section, result.questions)
        sections = [replace_section]
    else:
        sections = []
        for result in generated:
            section = _new_section(quiz, {
                'name': result.name,
                'timer_enabled': result.timer_enabled,
                'marks': result.marks,
                'negative_marks': result.negative_marks,
                'auto_generate': result.auto_generate,
            })
            _fill_section(section, result.questions)
            quiz.sections.append(section)
            sections.append(section)

    recompute_totals(quiz)
    db.session.commit()
    current_app.logger.info(f"Stored {len(sections)} generated section(s) on quiz {quiz.id}")
    return sections
