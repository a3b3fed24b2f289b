"""
Question bank services: validation, filtered listing, export and CSV import.
"""
import csv
import io
import json

from flask import current_app
from sqlalchemy import or_

from quizbank import db
from quizbank.common.vocabulary import OPTION_LETTERS, OPTION_QUESTION_TYPES
from quizbank.questions.models import TAG_FIELDS, Question
from quizbank.security import sanitize_input
from quizbank.tags.service import validate_question_tags


OPTION_FIELDS = ('option_a', 'option_b', 'option_c', 'option_d')

TEXT_FIELDS = ('question_text',) + OPTION_FIELDS + ('explanation',)

CSV_COLUMNS = TEXT_FIELDS[:-1] + ('correct_answers', 'explanation') + TAG_FIELDS


class QuestionValidationError(Exception):
    """Raised when question data is invalid or a question cannot be changed."""

    def __init__(self, errors, status: int = 400):
        if isinstance(errors, str):
            errors = [errors]
        super().__init__('; '.join(errors))
        self.errors = list(errors)
        self.status = status


def parse_correct_answers(value) -> list[str]:
    """Accept a list or a ';'-separated string of answers."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(';')
    return [str(item).strip() for item in items if str(item).strip()]


def _answer_errors(question_type: str, options: dict, answers: list[str]) -> list[str]:
    errors = []
    if question_type in OPTION_QUESTION_TYPES:
        missing = [field for field in OPTION_FIELDS if not options.get(field)]
        if missing:
            errors.append(f"{question_type} questions need all four options (missing: {', '.join(missing)})")
        letters = [answer.upper() for answer in answers]
        if any(letter not in OPTION_LETTERS for letter in letters):
            errors.append('Correct answers must be option letters A, B, C or D')
        elif len(set(letters)) != len(letters):
            errors.append('Correct answers must not repeat')
        elif question_type == 'MCQ' and len(letters) != 1:
            errors.append('MCQ questions need exactly one correct answer')
        elif question_type == 'MMCQ' and not letters:
            errors.append('MMCQ questions need at least one correct answer')
    elif question_type == 'Numeric':
        if len(answers) != 1:
            errors.append('Numeric questions need exactly one correct answer')
        else:
            try:
                float(answers[0])
            except ValueError:
                errors.append('Numeric answer must be a number')
    return errors


def build_question_fields(data: dict, existing: Question | None = None) -> dict:
    """
    Normalise and validate question data.

    Fields missing from ``data`` are taken from ``existing`` so updates can be partial.

    Raises:
        QuestionValidationError: with every problem found
    """
    tags_in = data.get('tags') if isinstance(data.get('tags'), dict) else {}

    def pick(field):
        if field in data:
            return data[field]
        if field in tags_in:
            return tags_in[field]
        return getattr(existing, field) if existing is not None else None

    fields = {}
    for field in TEXT_FIELDS + TAG_FIELDS:
        value = pick(field)
        fields[field] = sanitize_input(value) if value is not None else None
        if fields[field] == '':
            fields[field] = None

    if 'correct_answers' in data:
        answers = parse_correct_answers(data['correct_answers'])
    else:
        answers = list(existing.correct_answers or []) if existing is not None else []

    errors = []
    if not fields['question_text']:
        errors.append('question_text is required')
    errors.extend(validate_question_tags({field: fields[field] for field in TAG_FIELDS}))
    errors.extend(_answer_errors(fields['question_type'], fields, answers))
    if errors:
        raise QuestionValidationError(errors)

    if fields['question_type'] in OPTION_QUESTION_TYPES:
        answers = sorted(answer.upper() for answer in answers)
    else:
        for field in OPTION_FIELDS:
            fields[field] = None
    fields['correct_answers'] = answers
    return fields


def create_question(data: dict, user_id: int | None = None) -> Question:
    question = Question(created_by=user_id, **build_question_fields(data))
    db.session.add(question)
    db.session.commit()
    current_app.logger.info(f"Question {question.id} created by user {user_id}")
    return question


def update_question(question: Question, data: dict) -> Question:
    for field, value in build_question_fields(data, existing=question).items():
        setattr(question, field, value)
    db.session.commit()
    current_app.logger.info(f"Question {question.id} updated")
    return question


def delete_question(question: Question) -> None:
    """Delete a question unless a quiz uses it."""
    used_in = question.get_used_in_quizzes()
    if used_in:
        titles = ', '.join(quiz.title for quiz in used_in)
        raise QuestionValidationError(f"Question is used in quizzes: {titles}", 409)
    db.session.delete(question)
    db.session.commit()
    current_app.logger.info(f"Question {question.id} deleted")


def filter_questions_query(filters: dict | None = None, search: str | None = None):
    """
    Build a query over the bank.

    Args:
        filters: Tag field -> exact value; empty values are ignored
        search: Case-insensitive text matched against text, options,
            explanation and tag values
    """
    query = Question.query
    for field, value in (filters or {}).items():
        if field in TAG_FIELDS and value:
            query = query.filter(getattr(Question, field) == value)

    search = (search or '').strip()
    if search:
        escaped = search.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
        pattern = f"%{escaped}%"
        columns = TEXT_FIELDS + TAG_FIELDS
        query = query.filter(or_(*[getattr(Question, column).ilike(pattern, escape='\\') for column in columns]))
    return query.order_by(Question.created_at.desc(), Question.id.desc())


def get_usage_map(question_ids) -> dict:
    """Question id -> list of {id, title} of the quizzes using it, in one query."""
    from quizbank.quiz.models import Quiz, QuizSection, SectionQuestion

    usage = {question_id: [] for question_id in question_ids}
    if not usage:
        return usage
    rows = (
        db.session.query(SectionQuestion.question_id, Quiz.id, Quiz.title)
        .join(QuizSection, QuizSection.id == SectionQuestion.section_id)
        .join(Quiz, Quiz.id == QuizSection.quiz_id)
        .filter(SectionQuestion.question_id.in_(list(usage)))
        .distinct()
        .order_by(Quiz.title)
        .all()
    )
    for question_id, quiz_id, title in rows:
        usage[question_id].append({'id': quiz_id, 'title': title})
    return usage


def export_questions_json(questions) -> str:
    return json.dumps([question.to_dict() for question in questions], indent=2, ensure_ascii=False)


def export_questions_csv(questions) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator='\n')
    writer.writeheader()
    for question in questions:
        row = {column: getattr(question, column, None) or '' for column in CSV_COLUMNS}
        row['correct_answers'] = ';'.join(question.correct_answers or [])
        writer.writerow(row)
    return buffer.getvalue()


def import_questions_csv(content: str, user_id: int | None = None) -> dict:
    """
    Import questions from CSV.

    Valid rows are saved; invalid rows are reported with their line number.

    Returns:
        {'imported': int, 'errors': [{'row': int, 'errors': [str]}]}
    """
    reader = csv.DictReader(io.StringIO(content))
    headers = [header.strip() for header in (reader.fieldnames or [])]
    required = [column for column in CSV_COLUMNS if column not in ('explanation', 'source')]
    missing = [column for column in required if column not in headers]
    if missing:
        raise QuestionValidationError(f"Missing required columns: {', '.join(missing)}")

    imported = 0
    row_errors = []
    for line_number, raw in enumerate(reader, start=2):
        row = {key.strip(): value for key, value in raw.items() if key}
        if not any((value or '').strip() for value in row.values()):
            continue
        try:
            fields = build_question_fields(row)
        except QuestionValidationError as e:
            row_errors.append({'row': line_number, 'errors': e.errors})
            continue
        db.session.add(Question(created_by=user_id, **fields))
        imported += 1

    db.session.commit()
    current_app.logger.info(f"Question CSV import: {imported} imported, {len(row_errors)} rows rejected")
    return {'imported': imported, 'errors': row_errors}
