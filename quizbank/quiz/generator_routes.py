"""
Quiz auto-generation wizard routes.

The wizard endpoints are stateless: the client posts its current settings
and gets back validation errors, suggested distributions or clamped counts.
Generation stores the drawn sections on a quiz.
"""
from flask import current_app, jsonify
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from quizbank import db
from quizbank.common.decorators import educator_required
from quizbank.common.request_utils import error_response, get_json_body, parse_int
from quizbank.common.vocabulary import DIFFICULTY_LEVELS, QUESTION_TYPES
from quizbank.questions.models import Question
from quizbank.quiz import quiz_bp
from quizbank.quiz.builder import (
    QuizBuilderError,
    apply_generated_sections,
    check_author,
    get_questions_in_other_quizzes,
    get_quiz_or_error,
    get_section_or_error,
    get_used_questions,
)
from quizbank.quiz.generator import (
    STEPS,
    GenerationError,
    GeneratorSettings,
    QuizGenerator,
    SectionSetup,
    TopicDistribution,
)


def _generation_error(e: GenerationError, status: int = 400):
    return error_response(e.errors[0] if len(e.errors) == 1 else 'Quiz generation failed', status, errors=e.errors)


def _build_generator(data: dict, exam_type: str, quiz=None, section_id: int | None = None) -> QuizGenerator:
    """
    Generator over the exam type's questions.

    Excludes questions in the quiz's other sections and, unless
    ``allow_reuse`` is set, questions placed in other quizzes.
    """
    pool = Question.query.filter_by(exam_type=exam_type).all() if exam_type else []

    if quiz is None and data.get('quiz_id') is not None:
        quiz = get_quiz_or_error(parse_int(data.get('quiz_id'), 0))
        section_id = parse_int(data.get('section_id'))

    used = set()
    if quiz is not None:
        used |= get_used_questions(quiz, section_id)
    if not data.get('allow_reuse'):
        used |= get_questions_in_other_quizzes(quiz.id if quiz is not None else None)
    return QuizGenerator(pool, used_question_ids=used)


def _section_from(data: dict) -> SectionSetup:
    section = data.get('section')
    if not isinstance(section, dict):
        raise GenerationError('section is required')
    return SectionSetup.from_dict(section)


@quiz_bp.route('/generator/validate', methods=['POST'])
@educator_required
def validate_generator_settings():
    """
    Validate wizard settings.

    Request body:
    {
        "step": "sections",          // optional: exam, sections or filters
        "exam_type": "JEE",
        "sections": [{"subject": "Physics", "chapter_distribution": [...], ...}],
        "quiz_id": 3, "section_id": 7, "allow_reuse": false   // optional
    }
    """
    data = get_json_body()
    try:
        settings = GeneratorSettings.from_dict(data)
        generator = _build_generator(data, settings.exam_type)
        step = data.get('step')
        if step:
            errors = generator.validate_step(step, settings)
            return jsonify({'success': True, 'step': step, 'errors': errors, 'can_proceed': not errors}), 200
        steps = {name: generator.validate_step(name, settings) for name in STEPS}
        return jsonify({
            'success': True,
            'steps': steps,
            'can_generate': not any(steps.values()),
        }), 200
    except GenerationError as e:
        return _generation_error(e)
    except QuizBuilderError as e:
        return error_response(e.message, e.status)


@quiz_bp.route('/generator/availability', methods=['POST'])
@educator_required
def generator_availability():
    """Count the questions a section (or one of its chapters) can draw from."""
    data = get_json_body()
    try:
        exam_type = (data.get('exam_type') or '').strip()
        section = _section_from(data)
        generator = _build_generator(data, exam_type)
    except GenerationError as e:
        return _generation_error(e)
    except QuizBuilderError as e:
        return error_response(e.message, e.status)

    chapter = data.get('chapter') or None
    available = generator.filter_questions(exam_type, section, chapter)
    topics = {}
    for question in available:
        topics[question.tags['topic']] = topics.get(question.tags['topic'], 0) + 1
    return jsonify({
        'success': True,
        'total': len(available),
        'by_difficulty': generator.count_by(available, 'difficulty_level', DIFFICULTY_LEVELS),
        'by_type': generator.count_by(available, 'question_type', QUESTION_TYPES),
        'by_topic': topics,
    }), 200


@quiz_bp.route('/generator/suggest', methods=['POST'])
@educator_required
def suggest_generator_distributions():
    """Suggest difficulty and type percentages from the section's available pool."""
    data = get_json_body()
    try:
        exam_type = (data.get('exam_type') or '').strip()
        section = _section_from(data)
        generator = _build_generator(data, exam_type)
    except GenerationError as e:
        return _generation_error(e)
    except QuizBuilderError as e:
        return error_response(e.message, e.status)

    difficulty, types = generator.suggest_distributions(exam_type, section)
    return jsonify({
        'success': True,
        'difficulty_distribution': difficulty,
        'type_distribution': types,
    }), 200


@quiz_bp.route('/generator/chapter-count', methods=['POST'])
@educator_required
def set_generator_chapter_count():
    """
    Set a chapter count, clamped to the chapter's available questions.

    Request body: {"exam_type", "section", "chapter", "count", "topics" (optional)}
    """
    data = get_json_body()
    chapter = (data.get('chapter') or '').strip()
    count = parse_int(data.get('count'))
    if not chapter or count is None:
        return error_response('chapter and count are required', 400)
    try:
        exam_type = (data.get('exam_type') or '').strip()
        section = _section_from(data)
        topics = None
        if data.get('topics') is not None:
            topics = [TopicDistribution.from_dict(topic) for topic in data['topics']]
        generator = _build_generator(data, exam_type)
        generator.set_chapter_count(exam_type, section, chapter, count, topics)
    except GenerationError as e:
        return _generation_error(e)
    except QuizBuilderError as e:
        return error_response(e.message, e.status)
    return jsonify({'success': True, 'section': section.to_dict()}), 200


@quiz_bp.route('/generator/topic-count', methods=['POST'])
@educator_required
def set_generator_topic_count():
    """
    Set a topic count, clamped to the chapter count left by the other topics.

    Request body: {"section", "chapter", "topic", "count"}
    """
    data = get_json_body()
    chapter = (data.get('chapter') or '').strip()
    topic = (data.get('topic') or '').strip()
    count = parse_int(data.get('count'))
    if not chapter or not topic or count is None:
        return error_response('chapter, topic and count are required', 400)
    try:
        section = _section_from(data)
        QuizGenerator([]).set_topic_count(section, chapter, topic, count)
    except GenerationError as e:
        return _generation_error(e)
    return jsonify({'success': True, 'section': section.to_dict()}), 200


def _run_generation(quiz_id: int, section_id: int | None = None):
    data = get_json_body()
    try:
        quiz = get_quiz_or_error(quiz_id)
        check_author(quiz, current_user)
        target = get_section_or_error(quiz, section_id) if section_id is not None else None

        settings = GeneratorSettings.from_dict(data)
        if target is not None and len(settings.sections) != 1:
            raise GenerationError('Provide exactly one section to regenerate a section')
        generator = _build_generator(data, settings.exam_type, quiz=quiz, section_id=section_id)
        generated = generator.generate(settings)
        sections = apply_generated_sections(quiz, generated, replace_section=target)
    except GenerationError as e:
        db.session.rollback()
        return _generation_error(e)
    except QuizBuilderError as e:
        db.session.rollback()
        return error_response(e.message, e.status)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error storing generated sections on quiz {quiz_id}: {str(e)}")
        return error_response('Failed to generate quiz', 500)

    return jsonify({
        'success': True,
        'message': f"Generated {len(sections)} section{'s' if len(sections) != 1 else ''}",
        'sections': [section.to_dict() for section in sections],
        'quiz': quiz.to_dict(),
    }), (200 if target is not None else 201)


@quiz_bp.route('/<int:quiz_id>/generate', methods=['POST'])
@educator_required
def generate_sections(quiz_id):
    """Generate sections from wizard settings and append them to the quiz."""
    return _run_generation(quiz_id)


@quiz_bp.route('/<int:quiz_id>/sections/<int:section_id>/generate', methods=['POST'])
@educator_required
def regenerate_section(quiz_id, section_id):
    """Regenerate one section in place, keeping its id and position."""
    return _run_generation(quiz_id, section_id)
