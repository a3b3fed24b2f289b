"""
Tag system rules.

- Difficulty levels and question types are immutable.
- Exam types, subjects and sources are append-only: existing values
  can never be renamed or deleted.
- Chapters and topics can be renamed or deleted while no question uses them.
"""
import csv
import io
from dataclasses import dataclass, asdict

from flask import current_app

from quizbank import db
from quizbank.common.vocabulary import DIFFICULTY_LEVELS, QUESTION_TYPES
from quizbank.security import sanitize_input
from quizbank.tags.models import Tag


# Category -> category of its parent (None for top-level categories)
CATEGORY_PARENTS = {
    'exam_types': None,
    'subjects': 'exam_types',
    'chapters': 'subjects',
    'topics': 'chapters',
    'sources': None,
}

IMMUTABLE_CATEGORIES = frozenset({'difficulty_levels', 'question_types'})

APPEND_ONLY_CATEGORIES = frozenset({'exam_types', 'subjects', 'sources'})

ALL_CATEGORIES = tuple(CATEGORY_PARENTS) + tuple(sorted(IMMUTABLE_CATEGORIES))

# Question column holding each category's value
QUESTION_FIELDS = {
    'exam_types': 'exam_type',
    'subjects': 'subject',
    'chapters': 'chapter',
    'topics': 'topic',
    'sources': 'source',
    'difficulty_levels': 'difficulty_level',
    'question_types': 'question_type',
}

CSV_COLUMNS = ('exam_type', 'subject', 'chapter', 'topic')

TEMPLATE_ROWS = (
    ('JEE', 'Physics', 'Mechanics', "Newton's Laws"),
    ('NEET', 'Biology', 'Botany', 'Plant Physiology'),
)


class TagError(Exception):
    """Raised when a tag operation breaks the tag system rules."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass
class TagUsageInfo:
    is_in_use: bool
    question_count: int
    is_modification: bool
    reason: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def format_category_name(category: str) -> str:
    """'difficulty_levels' -> 'Difficulty Levels'"""
    return ' '.join(word.capitalize() for word in category.split('_'))


def _check_category(category: str) -> None:
    if category not in ALL_CATEGORIES:
        raise TagError(f"Unknown tag category '{category}'")


def _parent_key(category: str, parent: str | None) -> str:
    """Validate the parent of a hierarchical tag and return the stored parent name."""
    parent_category = CATEGORY_PARENTS.get(category)
    if parent_category is None:
        return ''
    parent = (parent or '').strip()
    if not parent:
        singular = format_category_name(parent_category)[:-1].lower()
        raise TagError(f"Please select {'an' if singular[0] in 'aeiou' else 'a'} {singular} first")
    if not tag_exists(parent_category, parent):
        raise TagError(f"{format_category_name(parent_category)[:-1]} '{parent}' does not exist", 404)
    return parent


def _find_tag(category: str, name: str, parent_name: str = '') -> Tag | None:
    query = Tag.query.filter_by(category=category, name=name)
    if CATEGORY_PARENTS.get(category) is not None:
        query = query.filter_by(parent_name=parent_name)
    return query.first()


def tag_exists(category: str, name: str, parent: str | None = None) -> bool:
    """
    Check a tag value exists.

    For hierarchical categories a parent of None matches the value under any parent.
    """
    if category == 'difficulty_levels':
        return name in DIFFICULTY_LEVELS
    if category == 'question_types':
        return name in QUESTION_TYPES
    query = Tag.query.filter_by(category=category, name=name)
    if parent is not None and CATEGORY_PARENTS.get(category) is not None:
        query = query.filter_by(parent_name=parent)
    return db.session.query(query.exists()).scalar()


def get_tag_system() -> dict:
    """Return the whole tag system keyed the way clients consume it."""
    system = {
        'exam_types': [],
        'subjects': {},
        'chapters': {},
        'topics': {},
        'difficulty_levels': list(DIFFICULTY_LEVELS),
        'question_types': list(QUESTION_TYPES),
        'sources': [],
    }
    for tag in Tag.query.order_by(Tag.id).all():
        if CATEGORY_PARENTS.get(tag.category) is None:
            system[tag.category].append(tag.name)
        else:
            system[tag.category].setdefault(tag.parent_name, []).append(tag.name)
    return system


def _count_questions(category: str, value: str, parent_name: str = '') -> int:
    from quizbank.questions.models import Question
    field = QUESTION_FIELDS[category]
    query = Question.query.filter(getattr(Question, field) == value)
    parent_category = CATEGORY_PARENTS.get(category)
    if parent_category and parent_name:
        query = query.filter(getattr(Question, QUESTION_FIELDS[parent_category]) == parent_name)
    return query.count()


def get_tag_usage(category: str, value: str, operation: str = 'edit', parent: str | None = None) -> TagUsageInfo:
    """
    Describe whether an operation on a tag value is allowed.

    Args:
        category: Tag category
        value: Tag value
        operation: 'add', 'edit' or 'delete'
        parent: Owning tag name for subjects, chapters and topics
    """
    _check_category(category)

    if category in IMMUTABLE_CATEGORIES:
        return TagUsageInfo(True, 0, True, f"{format_category_name(category)} cannot be modified")

    parent_name = (parent or '').strip()
    if category in APPEND_ONLY_CATEGORIES and operation != 'add':
        if tag_exists(category, value, parent_name or None):
            return TagUsageInfo(
                True, 0, True, f"Existing {format_category_name(category)} cannot be modified"
            )

    count = _count_questions(category, value, parent_name)
    is_used = count > 0
    return TagUsageInfo(
        is_in_use=is_used,
        question_count=count,
        is_modification=operation != 'add' and is_used,
        reason=f"Used by {count} question{'s' if count != 1 else ''}" if is_used else None,
    )


def add_tag(category: str, value: str, parent: str | None = None) -> Tag:
    """Add a tag value under its parent."""
    _check_category(category)
    if category in IMMUTABLE_CATEGORIES:
        raise TagError(f"{format_category_name(category)} cannot be modified")

    value = sanitize_input(value)
    if not value:
        raise TagError('Tag name cannot be empty')

    parent_name = _parent_key(category, parent)
    if _find_tag(category, value, parent_name):
        raise TagError('Tag already exists', 409)

    tag = Tag(category=category, name=value, parent_name=parent_name)
    db.session.add(tag)
    db.session.commit()
    current_app.logger.info(f"Tag added: {tag!r}")
    return tag


def _chapter_shared(chapter: str, subject: str) -> bool:
    """True when another subject also has a chapter of this name (and so shares its topics)."""
    query = Tag.query.filter(Tag.category == 'chapters', Tag.name == chapter, Tag.parent_name != subject)
    return db.session.query(query.exists()).scalar()


def _carry_topics(old_chapter: str, new_chapter: str, subject: str) -> None:
    """Give a renamed chapter the topics of its old name; they stay put while another subject shares that name."""
    existing = {tag.name for tag in Tag.query.filter_by(category='topics', parent_name=new_chapter)}
    topics = Tag.query.filter_by(category='topics', parent_name=old_chapter).order_by(Tag.id).all()
    shared = _chapter_shared(old_chapter, subject)
    for topic in topics:
        if topic.name in existing:
            if not shared:
                db.session.delete(topic)
        elif shared:
            db.session.add(Tag(category='topics', name=topic.name, parent_name=new_chapter))
        else:
            topic.parent_name = new_chapter


def rename_tag(category: str, old_value: str, new_value: str, parent: str | None = None) -> Tag:
    """Rename an unused chapter or topic; a renamed chapter keeps its topics."""
    _check_category(category)
    new_value = sanitize_input(new_value)
    if not new_value:
        raise TagError('Tag name cannot be empty')

    usage = get_tag_usage(category, old_value, 'edit', parent)
    if usage.is_modification:
        raise TagError(usage.reason or f'Cannot edit tag "{old_value}"', 409)

    parent_name = _parent_key(category, parent)
    tag = _find_tag(category, old_value, parent_name)
    if not tag:
        raise TagError(f'Tag "{old_value}" not found', 404)
    if new_value == old_value:
        return tag
    if _find_tag(category, new_value, parent_name):
        raise TagError('Tag already exists', 409)

    tag.name = new_value
    if category == 'chapters':
        _carry_topics(old_value, new_value, parent_name)
    db.session.commit()
    current_app.logger.info(f"Tag renamed: {category} '{old_value}' -> '{new_value}'")
    return tag


def delete_tag(category: str, value: str, parent: str | None = None) -> None:
    """Delete an unused chapter (with its topics) or topic."""
    _check_category(category)
    usage = get_tag_usage(category, value, 'delete', parent)
    if usage.is_modification:
        raise TagError(usage.reason or f'Cannot delete tag "{value}"', 409)

    parent_name = _parent_key(category, parent)
    tag = _find_tag(category, value, parent_name)
    if not tag:
        raise TagError(f'Tag "{value}" not found', 404)

    if category == 'chapters' and not _chapter_shared(value, parent_name):
        Tag.query.filter_by(category='topics', parent_name=value).delete(synchronize_session=False)
    db.session.delete(tag)
    db.session.commit()
    current_app.logger.info(f"Tag deleted: {category} '{value}'")


def validate_question_tags(tags: dict) -> list[str]:
    """
    Check a question's tags against the hierarchy.

    Returns a list of error messages (empty when valid).
    """
    errors = []
    exam_type = tags.get('exam_type') or ''
    subject = tags.get('subject') or ''
    chapter = tags.get('chapter') or ''
    topic = tags.get('topic') or ''

    for field in ('exam_type', 'subject', 'chapter', 'topic', 'difficulty_level', 'question_type'):
        if not tags.get(field):
            errors.append(f"{field} is required")
    if errors:
        return errors

    if not tag_exists('exam_types', exam_type):
        errors.append(f"Unknown exam type '{exam_type}'")
    elif not tag_exists('subjects', subject, exam_type):
        errors.append(f"Subject '{subject}' is not defined for exam type '{exam_type}'")
    elif not tag_exists('chapters', chapter, subject):
        errors.append(f"Chapter '{chapter}' is not defined for subject '{subject}'")
    elif not tag_exists('topics', topic, chapter):
        errors.append(f"Topic '{topic}' is not defined for chapter '{chapter}'")

    if tags['difficulty_level'] not in DIFFICULTY_LEVELS:
        errors.append(f"difficulty_level must be one of: {', '.join(DIFFICULTY_LEVELS)}")
    if tags['question_type'] not in QUESTION_TYPES:
        errors.append(f"question_type must be one of: {', '.join(QUESTION_TYPES)}")

    source = tags.get('source')
    if source and not tag_exists('sources', source):
        errors.append(f"Unknown source '{source}'")
    return errors


def tag_template_csv() -> str:
    """CSV template for bulk tag upload."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(CSV_COLUMNS)
    writer.writerows(TEMPLATE_ROWS)
    return buffer.getvalue()


def import_tags_csv(content: str) -> dict:
    """
    Bulk-add tag hierarchies from CSV rows of exam_type, subject, chapter, topic.

    New chapters and topics may be added under existing exam types and
    subjects, but a row repeating an existing chapter and topic of an
    existing exam type and subject rejects the whole file.

    Returns:
        Counts of added exam types, subjects, chapters and topics
    """
    reader = csv.DictReader(io.StringIO(content))
    headers = [h.strip() for h in (reader.fieldnames or [])]
    missing = [column for column in CSV_COLUMNS if column not in headers]
    if missing:
        raise TagError(f"Missing required columns: {', '.join(missing)}")

    rows = []
    for line_number, raw in enumerate(reader, start=2):
        row = {key.strip(): sanitize_input(value) for key, value in raw.items() if key}
        if not any(row.get(column) for column in CSV_COLUMNS):
            continue
        empty = [column for column in CSV_COLUMNS if not row.get(column)]
        if empty:
            raise TagError(f"Row {line_number}: missing value for {', '.join(empty)}")
        rows.append(row)

    system = get_tag_system()
    for row in rows:
        if row['exam_type'] in system['exam_types'] and \
                row['subject'] in system['subjects'].get(row['exam_type'], []):
            has_chapter = row['chapter'] in system['chapters'].get(row['subject'], [])
            has_topic = row['topic'] in system['topics'].get(row['chapter'], [])
            if has_chapter and has_topic:
                raise TagError(
                    'CSV contains duplicate chapter and topic combinations. '
                    'New chapters and topics can be added to existing exam types and subjects, '
                    'but existing combinations cannot be modified.'
                )

    added = {'exam_types': 0, 'subjects': 0, 'chapters': 0, 'topics': 0}
    levels = (
        ('exam_types', 'exam_type', None),
        ('subjects', 'subject', 'exam_type'),
        ('chapters', 'chapter', 'subject'),
        ('topics', 'topic', 'chapter'),
    )
    for row in rows:
        for category, column, parent_column in levels:
            parent_name = row[parent_column] if parent_column else ''
            siblings = system[category] if parent_column is None else system[category].setdefault(parent_name, [])
            if row[column] in siblings:
                continue
            siblings.append(row[column])
            db.session.add(Tag(category=category, name=row[column], parent_name=parent_name))
            added[category] += 1

    db.session.commit()
    current_app.logger.info(f"Tag CSV imported: {added}")
    return added
