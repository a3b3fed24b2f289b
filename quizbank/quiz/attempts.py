"""
Test-taking flow.

An attempt starts on the instructions view. Accepting the instructions
starts the timer and opens the first question. Every change checks the
timer first: once time is up the attempt is submitted automatically and
further answers are refused.
"""
import math
from datetime import datetime
from decimal import Decimal

from flask import current_app

from quizbank import db
from quizbank.common.vocabulary import OPTION_LETTERS, OPTION_QUESTION_TYPES
from quizbank.config import config
from quizbank.questions.models import Question
from quizbank.quiz.models import Quiz, QuizAttempt, QuestionResponse


class AttemptError(Exception):
    """Raised when an attempt action is not allowed."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def get_attempt_or_error(attempt_id: int, user) -> QuizAttempt:
    attempt = db.session.get(QuizAttempt, attempt_id)
    if not attempt or attempt.user_id != user.id:
        raise AttemptError('Attempt not found', 404)
    return attempt


def _quiz_entries(quiz: Quiz):
    """(section, question) pairs in paper order."""
    for section in quiz.sections:
        for entry in section.questions:
            yield section, entry.question


def time_remaining(attempt: QuizAttempt, now: datetime | None = None) -> int | None:
    """Seconds left, or None for an untimed quiz."""
    total = (attempt.quiz.total_duration or 0) * 60
    if total <= 0:
        return None
    if attempt.started_at is None:
        return total
    elapsed = ((now or datetime.utcnow()) - attempt.started_at).total_seconds()
    return max(math.ceil(total - elapsed), 0)


def start_attempt(quiz: Quiz, user) -> tuple[QuizAttempt, bool]:
    """
    Open an attempt, resuming the user's unfinished one.

    Returns:
        Tuple of (attempt, resumed)
    """
    if quiz.get_question_count() == 0:
        raise AttemptError('This quiz has no questions yet')

    unfinished = (
        QuizAttempt.query
        .filter(QuizAttempt.quiz_id == quiz.id, QuizAttempt.user_id == user.id,
                QuizAttempt.status != QuizAttempt.STATUS_SUBMITTED)
        .order_by(QuizAttempt.created_at.desc())
        .first()
    )
    if unfinished and not check_expiry(unfinished):
        return unfinished, True

    attempt = QuizAttempt(quiz_id=quiz.id, user_id=user.id, status=QuizAttempt.STATUS_INSTRUCTIONS)
    db.session.add(attempt)
    db.session.commit()
    current_app.logger.info(f"User {user.id} opened attempt {attempt.id} on quiz {quiz.id}")
    return attempt, False


def accept_instructions(attempt: QuizAttempt) -> QuizAttempt:
    """Start the timer and open the first question."""
    if attempt.status != QuizAttempt.STATUS_INSTRUCTIONS:
        _require_in_progress(attempt)
        return attempt

    entries = list(_quiz_entries(attempt.quiz))
    if not entries:
        raise AttemptError('This quiz has no questions yet')

    attempt.status = QuizAttempt.STATUS_IN_PROGRESS
    attempt.started_at = datetime.utcnow()
    responses = _sync_responses(attempt)
    first_question_id = entries[0][1].id
    attempt.current_question_id = first_question_id
    responses[first_question_id].visited = True
    db.session.commit()
    current_app.logger.info(f"Attempt {attempt.id} started")
    return attempt


def check_expiry(attempt: QuizAttempt) -> bool:
    """Submit an in-progress attempt whose time is up. Returns True if the attempt is now submitted."""
    if attempt.is_submitted:
        return True
    if attempt.status == QuizAttempt.STATUS_IN_PROGRESS and time_remaining(attempt) == 0:
        submit_attempt(attempt, auto=True)
        return True
    return False


def _require_in_progress(attempt: QuizAttempt) -> None:
    if check_expiry(attempt):
        if attempt.auto_submitted:
            raise AttemptError('Time is up. The attempt has been submitted', 409)
        raise AttemptError('Attempt has already been submitted', 409)
    if attempt.status == QuizAttempt.STATUS_INSTRUCTIONS:
        raise AttemptError('Please accept the instructions first', 409)


def _sync_responses(attempt: QuizAttempt) -> dict:
    """
    Responses for the questions currently on the paper, keyed by question id.

    Questions added to the quiz after the attempt started get a fresh
    response; responses to removed questions are left out.
    """
    existing = {response.question_id: response for response in attempt.responses}
    responses = {}
    for section, question in _quiz_entries(attempt.quiz):
        response = existing.get(question.id)
        if response is None:
            response = QuestionResponse(
                attempt=attempt,
                question_id=question.id,
                section_id=section.id,
                selected_answers=[],
                visited=False,
                answered=False,
                marked_for_review=False,
            )
            db.session.add(response)
        else:
            response.section_id = section.id
        responses[question.id] = response
    return responses


def _get_response(attempt: QuizAttempt, question_id: int) -> QuestionResponse:
    response = _sync_responses(attempt).get(question_id)
    if response is None:
        raise AttemptError('Question is not part of this quiz', 404)
    return response


def navigate(attempt: QuizAttempt, question_id: int) -> QuestionResponse:
    _require_in_progress(attempt)
    response = _get_response(attempt, question_id)
    response.visited = True
    attempt.current_question_id = question_id
    db.session.commit()
    return response


def _normalise_answers(question, selected_answers) -> list[str]:
    if selected_answers is None:
        return []
    if isinstance(selected_answers, (str, int, float)):
        selected_answers = [selected_answers]
    if not isinstance(selected_answers, list):
        raise AttemptError('selected_answers must be a list')
    answers = [str(answer).strip() for answer in selected_answers if str(answer).strip()]

    if question.question_type in OPTION_QUESTION_TYPES:
        answers = sorted({answer.upper() for answer in answers})
        if any(answer not in OPTION_LETTERS for answer in answers):
            raise AttemptError('Answers must be option letters A, B, C or D')
        if question.question_type == 'MCQ' and len(answers) > 1:
            raise AttemptError('Only one option can be selected for this question')
    elif answers:
        if len(answers) != 1:
            raise AttemptError('Enter a single numeric value')
        try:
            float(answers[0])
        except ValueError:
            raise AttemptError('Enter a single numeric value')
    return answers


def save_response(attempt: QuizAttempt, question_id: int, selected_answers) -> QuestionResponse:
    """Save an answer; an empty selection clears it."""
    _require_in_progress(attempt)
    response = _get_response(attempt, question_id)
    question = db.session.get(Question, question_id)

    answers = _normalise_answers(question, selected_answers)
    response.selected_answers = answers
    response.answered = bool(answers)
    response.visited = True
    attempt.current_question_id = question_id
    db.session.commit()
    return response


def clear_response(attempt: QuizAttempt, question_id: int) -> QuestionResponse:
    _require_in_progress(attempt)
    response = _get_response(attempt, question_id)
    response.selected_answers = []
    response.answered = False
    db.session.commit()
    return response


def mark_for_review(attempt: QuizAttempt, question_id: int, marked: bool = True) -> QuestionResponse:
    _require_in_progress(attempt)
    response = _get_response(attempt, question_id)
    response.marked_for_review = marked
    response.visited = True
    db.session.commit()
    return response


def palette_summary(responses) -> dict:
    summary = {'answered': 0, 'not_answered': 0, 'marked_for_review': 0, 'not_visited': 0}
    for response in responses:
        if response.answered:
            summary['answered'] += 1
        elif response.visited:
            summary['not_answered'] += 1
        else:
            summary['not_visited'] += 1
        if response.marked_for_review:
            summary['marked_for_review'] += 1
    return summary


def submit_attempt(attempt: QuizAttempt, auto: bool = False) -> QuizAttempt:
    """
    Grade and close an attempt.

    Correct answers earn the section marks, wrong answers lose the section
    negative marks and unanswered questions score nothing.
    """
    if attempt.is_submitted:
        raise AttemptError('Attempt has already been submitted', 409)
    if attempt.status == QuizAttempt.STATUS_INSTRUCTIONS and not auto:
        raise AttemptError('Please accept the instructions first', 409)

    tolerance = current_app.config.get('NUMERIC_ANSWER_TOLERANCE', config.NUMERIC_ANSWER_TOLERANCE)
    responses = _sync_responses(attempt)
    score = Decimal('0')
    for section, question in _quiz_entries(attempt.quiz):
        response = responses[question.id]
        if not response.answered:
            response.is_correct = None
            response.marks_awarded = Decimal('0')
            continue
        response.is_correct = question.check_answer(response.selected_answers, tolerance)
        if response.is_correct:
            response.marks_awarded = Decimal(str(section.marks))
        else:
            response.marks_awarded = -Decimal(str(section.negative_marks))
        score += response.marks_awarded

    attempt.score = score
    attempt.max_score = attempt.quiz.compute_total_marks()
    attempt.status = QuizAttempt.STATUS_SUBMITTED
    attempt.submitted_at = datetime.utcnow()
    attempt.auto_submitted = auto
    db.session.commit()
    current_app.logger.info(
        f"Attempt {attempt.id} {'auto-' if auto else ''}submitted: {score}/{attempt.max_score}"
    )
    return attempt


def attempt_state(attempt: QuizAttempt) -> dict:
    """Everything the test-taking view needs, without correct answers."""
    check_expiry(attempt)
    quiz = attempt.quiz
    if attempt.status == QuizAttempt.STATUS_IN_PROGRESS:
        responses = _sync_responses(attempt)
        db.session.commit()
    else:
        responses = {response.question_id: response for response in attempt.responses}

    sections = []
    number = 0
    for section in quiz.sections:
        questions = []
        for entry in section.questions:
            number += 1
            question = entry.question
            response = responses.get(question.id)
            questions.append({
                'number': number,
                'id': question.id,
                'question_text': question.question_text,
                'question_type': question.question_type,
                'options': question.get_options(),
                'status': response.to_status_dict() if response else None,
            })
        sections.append({
            'id': section.id,
            'name': section.name,
            'instructions': list(section.instructions or []),
            'duration': section.duration,
            'timer_enabled': section.timer_enabled,
            'marks': float(section.marks or 0),
            'negative_marks': float(section.negative_marks or 0),
            'questions': questions,
        })

    return {
        'id': attempt.id,
        'quiz_id': quiz.id,
        'title': quiz.title,
        'status': attempt.status,
        'instructions': list(quiz.instructions or []),
        'total_duration': quiz.total_duration,
        'total_marks': float(quiz.total_marks or 0),
        'time_remaining': time_remaining(attempt),
        'started_at': attempt.started_at.isoformat() if attempt.started_at else None,
        'current_question_id': attempt.current_question_id,
        'palette': palette_summary(responses.values()),
        'sections': sections if attempt.status != QuizAttempt.STATUS_INSTRUCTIONS else [],
    }


def build_result(attempt: QuizAttempt) -> dict:
    """Totals, per-section breakdown and per-question detail of a submitted attempt."""
    if not attempt.is_submitted:
        raise AttemptError('Attempt has not been submitted yet', 409)

    quiz = attempt.quiz
    responses = {response.question_id: response for response in attempt.responses}
    totals = {'correct': 0, 'wrong': 0, 'unanswered': 0}
    sections = []
    number = 0
    for section in quiz.sections:
        breakdown = {
            'id': section.id,
            'name': section.name,
            'correct': 0,
            'wrong': 0,
            'unanswered': 0,
            'score': Decimal('0'),
            'max_score': Decimal(str(section.marks or 0)) * len(section.questions),
            'questions': [],
        }
        for entry in section.questions:
            number += 1
            question = entry.question
            response = responses.get(question.id)
            answered = bool(response and response.answered)
            if not answered:
                outcome = 'unanswered'
            elif response.is_correct:
                outcome = 'correct'
            else:
                outcome = 'wrong'
            breakdown[outcome] += 1
            totals[outcome] += 1
            marks = response.marks_awarded if response and response.marks_awarded is not None else Decimal('0')
            breakdown['score'] += marks
            breakdown['questions'].append({
                'number': number,
                'id': question.id,
                'question_text': question.question_text,
                'question_type': question.question_type,
                'options': question.get_options(),
                'selected_answers': list(response.selected_answers or []) if response else [],
                'correct_answers': list(question.correct_answers or []),
                'explanation': question.explanation,
                'outcome': outcome,
                'marks_awarded': float(marks),
                'marked_for_review': bool(response and response.marked_for_review),
            })
        breakdown['score'] = float(breakdown['score'])
        breakdown['max_score'] = float(breakdown['max_score'])
        sections.append(breakdown)

    max_score = float(attempt.max_score or 0)
    score = float(attempt.score or 0)
    return {
        'attempt_id': attempt.id,
        'quiz_id': quiz.id,
        'title': quiz.title,
        'score': score,
        'max_score': max_score,
        'percentage': round(score / max_score * 100, 2) if max_score else 0.0,
        'correct': totals['correct'],
        'wrong': totals['wrong'],
        'unanswered': totals['unanswered'],
        'auto_submitted': attempt.auto_submitted,
        'started_at': attempt.started_at.isoformat() if attempt.started_at else None,
        'submitted_at': attempt.submitted_at.isoformat() if attempt.submitted_at else None,
        'sections': sections,
    }
