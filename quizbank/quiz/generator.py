"""
Quiz auto-generation.

The generator works in three steps, each with its own validation:

1. exam      - pick an exam type
2. sections  - per section pick a subject, chapter/topic counts and the
               difficulty and question type percentages
3. filters   - confirm the pool can supply every section

``QuizGenerator.generate`` then draws questions chapter by chapter: topic
counts first, the rest of each chapter count from the whole chapter. Draws
are random but prefer questions whose difficulty and type buckets are still
below target. A question is never drawn twice in a run, and ids passed as
``used_question_ids`` are never drawn at all.

Works on any objects exposing ``id`` and a ``tags`` mapping, so it runs
on ``Question`` rows as well as plain objects.
"""
import logging
import math
import random
import uuid
from collections import Counter
from dataclasses import dataclass, field, asdict
from decimal import Decimal, ROUND_HALF_UP

from quizbank.common.vocabulary import (
    DEFAULT_DIFFICULTY_DISTRIBUTION,
    DEFAULT_TYPE_DISTRIBUTION,
    DIFFICULTY_LEVELS,
    QUESTION_TYPES,
)

logger = logging.getLogger(__name__)

STEPS = ('exam', 'sections', 'filters')


class GenerationError(Exception):
    """Raised with the list of problems that prevent generation."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        super().__init__('; '.join(errors))
        self.errors = list(errors)


def _to_int(value, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise GenerationError(f"{name} must be a whole number")
    return number


def _parse_distribution(raw, keys, default: dict, name: str) -> dict:
    if raw is None:
        return dict(default)
    if not isinstance(raw, dict):
        raise GenerationError(f"{name} must be an object")
    unknown = [key for key in raw if key not in keys]
    if unknown:
        raise GenerationError(f"{name} has unknown keys: {', '.join(map(str, unknown))}")
    return {key: _to_int(raw.get(key, 0), f"{name}.{key}") for key in keys}


def round_half_up(value, places: int = 1) -> float:
    """round_half_up(12.25) == 12.3, unlike the builtin round()."""
    exponent = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))


@dataclass
class TopicDistribution:
    topic: str
    count: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> 'TopicDistribution':
        topic = (data.get('topic') or '').strip()
        if not topic:
            raise GenerationError('Topic name is required')
        return cls(topic=topic, count=max(_to_int(data.get('count', 0), 'Topic count'), 0))


@dataclass
class ChapterDistribution:
    chapter: str
    count: int = 0
    topics: list[TopicDistribution] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'ChapterDistribution':
        chapter = (data.get('chapter') or '').strip()
        if not chapter:
            raise GenerationError('Chapter name is required')
        return cls(
            chapter=chapter,
            count=max(_to_int(data.get('count', 0), 'Chapter count'), 0),
            topics=[TopicDistribution.from_dict(topic) for topic in data.get('topics') or []],
        )

    @property
    def topics_total(self) -> int:
        return sum(topic.count for topic in self.topics)


@dataclass
class SectionSetup:
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    subject: str = ''
    question_count: int = 10
    difficulty_distribution: dict = field(default_factory=lambda: dict(DEFAULT_DIFFICULTY_DISTRIBUTION))
    type_distribution: dict = field(default_factory=lambda: dict(DEFAULT_TYPE_DISTRIBUTION))
    chapter_distribution: list[ChapterDistribution] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'SectionSetup':
        """
        Parse a section from request data.

        When chapters are given, ``question_count`` is their total.
        """
        chapters = [ChapterDistribution.from_dict(chapter) for chapter in data.get('chapter_distribution') or []]
        if chapters:
            question_count = sum(chapter.count for chapter in chapters)
        else:
            question_count = _to_int(data.get('question_count', 10), 'question_count')
        return cls(
            id=str(data.get('id') or uuid.uuid4()),
            subject=(data.get('subject') or '').strip(),
            question_count=question_count,
            difficulty_distribution=_parse_distribution(
                data.get('difficulty_distribution'), DIFFICULTY_LEVELS,
                DEFAULT_DIFFICULTY_DISTRIBUTION, 'difficulty_distribution',
            ),
            type_distribution=_parse_distribution(
                data.get('type_distribution'), QUESTION_TYPES,
                DEFAULT_TYPE_DISTRIBUTION, 'type_distribution',
            ),
            chapter_distribution=chapters,
        )

    def get_chapter(self, chapter: str) -> ChapterDistribution | None:
        return next((entry for entry in self.chapter_distribution if entry.chapter == chapter), None)

    @property
    def chapters_total(self) -> int:
        return sum(chapter.count for chapter in self.chapter_distribution)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class GeneratorSettings:
    exam_type: str = ''
    sections: list[SectionSetup] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'GeneratorSettings':
        sections = data.get('sections') or []
        if not isinstance(sections, list):
            raise GenerationError('sections must be a list')
        return cls(
            exam_type=(data.get('exam_type') or '').strip(),
            sections=[SectionSetup.from_dict(section) for section in sections],
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class GeneratedSection:
    setup_id: str
    name: str
    marks: float
    negative_marks: float
    questions: list
    auto_generate: dict
    timer_enabled: bool = False


def suggest_percentages(counts: dict) -> dict | None:
    """
    Turn bucket counts into whole percentages totalling 100.

    Each share is rounded half-up; the residue goes to the largest bucket
    (the last one on ties). None when every count is zero.
    """
    total = sum(counts.values())
    if total == 0:
        return None
    distribution = {
        key: int((Decimal(count * 100) / Decimal(total)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
        for key, count in counts.items()
    }
    residue = 100 - sum(distribution.values())
    if residue:
        max_key = None
        for key, value in distribution.items():
            if max_key is None or value >= distribution[max_key]:
                max_key = key
        distribution[max_key] += residue
    return distribution


def apportion(distribution: dict, total: int) -> dict:
    """
    Split ``total`` by percentages with the largest remainder method.

    apportion({'Easy': 30, 'Medium': 50, 'Hard': 20}, 7) == {'Easy': 2, 'Medium': 4, 'Hard': 1}
    """
    percent_total = sum(distribution.values())
    if percent_total <= 0 or total <= 0:
        return {key: 0 for key in distribution}
    shares = {key: divmod(pct * total, percent_total) for key, pct in distribution.items()}
    targets = {key: share[0] for key, share in shares.items()}
    leftover = total - sum(targets.values())
    by_remainder = sorted(distribution, key=lambda key: shares[key][1], reverse=True)
    for key in by_remainder[:leftover]:
        targets[key] += 1
    return targets


class QuizGenerator:
    """
    Validates generator settings against a question pool and draws sections.

    Args:
        questions: Candidate pool (objects with ``id`` and ``tags``)
        used_question_ids: Ids that must never be offered or drawn
        rng: Random source, seeded in tests
    """

    def __init__(self, questions, used_question_ids=(), rng: random.Random | None = None):
        self.questions = list(questions)
        self.used_question_ids = set(used_question_ids)
        self.rng = rng or random.Random()

    # Pool queries

    def filter_questions(self, exam_type: str, section: SectionSetup, chapter: str | None = None,
                         exclude_ids=()) -> list:
        """Questions of the exam type and subject in ``chapter``, or in any chapter of the section."""
        if not section.subject or not exam_type:
            return []
        exclude_ids = set(exclude_ids)
        chapters = {entry.chapter for entry in section.chapter_distribution}
        result = []
        for question in self.questions:
            if question.id in self.used_question_ids or question.id in exclude_ids:
                continue
            tags = question.tags
            if tags.get('exam_type') != exam_type or tags.get('subject') != section.subject:
                continue
            if chapter:
                if tags.get('chapter') != chapter:
                    continue
            elif tags.get('chapter') not in chapters:
                continue
            result.append(question)
        return result

    @staticmethod
    def count_by(questions, tag: str, keys) -> dict:
        counts = {key: 0 for key in keys}
        for question in questions:
            value = question.tags.get(tag)
            if value in counts:
                counts[value] += 1
        return counts

    def suggest_distributions(self, exam_type: str, section: SectionSetup) -> tuple[dict, dict]:
        """Difficulty and type percentages matching the available pool."""
        available = self.filter_questions(exam_type, section)
        if not available:
            return dict(section.difficulty_distribution), dict(section.type_distribution)
        difficulty = suggest_percentages(self.count_by(available, 'difficulty_level', DIFFICULTY_LEVELS))
        types = suggest_percentages(self.count_by(available, 'question_type', QUESTION_TYPES))
        return (
            difficulty or dict(section.difficulty_distribution),
            types or dict(section.type_distribution),
        )

    # Distribution editing

    def set_chapter_count(self, exam_type: str, section: SectionSetup, chapter: str, count: int,
                          topics: list[TopicDistribution] | None = None) -> ChapterDistribution:
        """Set a chapter count, clamped to what the chapter can supply."""
        available = len(self.filter_questions(exam_type, section, chapter))
        valid_count = max(min(count, available), 0)

        entry = section.get_chapter(chapter)
        if entry is not None:
            entry.count = valid_count
            if topics is not None:
                entry.topics = topics
        else:
            entry = ChapterDistribution(chapter=chapter, count=valid_count, topics=topics or [])
            section.chapter_distribution.append(entry)

        section.question_count = section.chapters_total
        return entry

    def set_topic_count(self, section: SectionSetup, chapter: str, topic: str, count: int) -> TopicDistribution:
        """Set a topic count, clamped so the chapter's topics never exceed the chapter count."""
        entry = section.get_chapter(chapter)
        if entry is None:
            raise GenerationError(f"Chapter '{chapter}' is not part of this section")

        others = sum(item.count for item in entry.topics if item.topic != topic)
        valid_count = max(min(count, entry.count - others), 0)

        for item in entry.topics:
            if item.topic == topic:
                item.count = valid_count
                return item
        item = TopicDistribution(topic=topic, count=valid_count)
        entry.topics.append(item)
        return item

    # Step validation

    def validate_exam_step(self, settings: GeneratorSettings) -> list[str]:
        if not settings.exam_type:
            return ['Please select an exam type']
        return []

    def _validate_chapter(self, chapter: ChapterDistribution, available: list) -> list[str]:
        if len(available) < chapter.count:
            return [f"Not enough questions available (need {chapter.count}, have {len(available)})"]

        errors = []
        if chapter.topics_total > chapter.count:
            errors.append(
                f"Total topic questions ({chapter.topics_total}) exceeds chapter count ({chapter.count})"
            )

        claimed = set()
        for topic in chapter.topics:
            topic_questions = [
                question for question in available
                if question.tags.get('topic') == topic.topic and question.id not in claimed
            ]
            if len(topic_questions) < topic.count:
                errors.append(
                    f'Not enough questions for topic "{topic.topic}" '
                    f'(need {topic.count}, have {len(topic_questions)})'
                )
            else:
                claimed.update(question.id for question in topic_questions[:topic.count])
        return errors

    def validate_sections_step(self, settings: GeneratorSettings) -> list[str]:
        errors = []
        if not settings.sections:
            errors.append('Please add at least one section')

        for index, section in enumerate(settings.sections, start=1):
            if not section.subject:
                errors.append(f"Section {index}: Please select a subject")
                continue
            if not section.chapter_distribution:
                errors.append(f"Section {index}: Please add at least one chapter")
            elif section.chapters_total == 0:
                errors.append(f"Section {index}: Please choose at least one question")

            for chapter in section.chapter_distribution:
                available = self.filter_questions(settings.exam_type, section, chapter.chapter)
                for error in self._validate_chapter(chapter, available):
                    errors.append(f"Section {index}, {chapter.chapter}: {error}")

            available = self.filter_questions(settings.exam_type, section)
            needed_total = section.chapters_total
            checks = (
                ('difficulty_level', section.difficulty_distribution, DIFFICULTY_LEVELS, 'Difficulty'),
                ('question_type', section.type_distribution, QUESTION_TYPES, 'Question type'),
            )
            for tag, distribution, keys, label in checks:
                percent_total = sum(distribution.values())
                if percent_total != 100:
                    errors.append(f"Section {index}: {label} distribution must total 100% (currently {percent_total}%)")
                counts = self.count_by(available, tag, keys)
                for key, percentage in distribution.items():
                    needed = math.ceil(percentage * needed_total / 100)
                    if needed > counts[key]:
                        errors.append(
                            f"Section {index}: Not enough {key} questions available. "
                            f"Need {needed} ({percentage}%), but only have {counts[key]}"
                        )
        return errors

    def validate_filters_step(self, settings: GeneratorSettings) -> list[str]:
        errors = []
        for index, section in enumerate(settings.sections, start=1):
            available = self.filter_questions(settings.exam_type, section)
            if len(available) < section.question_count:
                errors.append(
                    f"Section {index}: Not enough questions available "
                    f"(need {section.question_count}, have {len(available)})"
                )
        return errors

    def validate_step(self, step: str, settings: GeneratorSettings) -> list[str]:
        validators = {
            'exam': self.validate_exam_step,
            'sections': self.validate_sections_step,
            'filters': self.validate_filters_step,
        }
        if step not in validators:
            raise GenerationError(f"Unknown step '{step}'. Must be one of: {', '.join(STEPS)}")
        return validators[step](settings)

    def can_proceed(self, step: str, settings: GeneratorSettings) -> bool:
        return not self.validate_step(step, settings)

    def validate(self, settings: GeneratorSettings) -> list[str]:
        """Errors of every step, in step order."""
        errors = []
        for step in STEPS:
            errors.extend(self.validate_step(step, settings))
        return errors

    # Drawing

    def _draw(self, pool: list, count: int, drawn: set, picked: dict, targets: dict) -> list:
        """
        Draw up to ``count`` questions from ``pool``.

        Candidates filling more under-target buckets win; ties are broken at random.
        """
        def score(question):
            return sum(
                int(picked[tag][question.tags.get(tag)] < targets[tag].get(question.tags.get(tag), 0))
                for tag in ('difficulty_level', 'question_type')
            )

        candidates = [question for question in pool if question.id not in drawn]
        chosen = []
        while candidates and len(chosen) < count:
            scores = [score(question) for question in candidates]
            best = max(scores)
            question = self.rng.choice([q for q, s in zip(candidates, scores) if s == best])

            candidates.remove(question)
            drawn.add(question.id)
            picked['difficulty_level'][question.tags.get('difficulty_level')] += 1
            picked['question_type'][question.tags.get('question_type')] += 1
            chosen.append(question)
        return chosen

    def _draw_section(self, exam_type: str, section: SectionSetup, drawn: set) -> list:
        total = section.chapters_total
        targets = {
            'difficulty_level': apportion(section.difficulty_distribution, total),
            'question_type': apportion(section.type_distribution, total),
        }
        picked = {
            'difficulty_level': Counter({key: 0 for key in DIFFICULTY_LEVELS}),
            'question_type': Counter({key: 0 for key in QUESTION_TYPES}),
        }

        questions = []
        for chapter in section.chapter_distribution:
            chapter_pool = self.filter_questions(exam_type, section, chapter.chapter)
            chapter_questions = []
            for topic in chapter.topics:
                if topic.count <= 0:
                    continue
                topic_pool = [q for q in chapter_pool if q.tags.get('topic') == topic.topic]
                chapter_questions.extend(self._draw(topic_pool, topic.count, drawn, picked, targets))
            remaining = chapter.count - len(chapter_questions)
            if remaining > 0:
                chapter_questions.extend(self._draw(chapter_pool, remaining, drawn, picked, targets))
            logger.debug(f"Chapter {chapter.chapter}: drew {len(chapter_questions)} of {chapter.count}")
            questions.extend(chapter_questions)

        logger.debug(f"Section {section.subject}: difficulty {dict(picked['difficulty_level'])} "
                     f"vs target {targets['difficulty_level']}")
        return questions

    def generate(self, settings: GeneratorSettings) -> list[GeneratedSection]:
        """
        Draw every section of the settings.

        Raises:
            GenerationError: when any wizard step has errors, or when
                earlier sections used up questions a later one needed
        """
        errors = self.validate(settings)
        if errors:
            raise GenerationError(errors)

        drawn = set()
        generated = []
        shortfalls = []
        for index, section in enumerate(settings.sections, start=1):
            questions = self._draw_section(settings.exam_type, section, drawn)
            if len(questions) < section.chapters_total:
                shortfalls.append(
                    f"Section {index}: Not enough questions available "
                    f"(need {section.chapters_total}, have {len(questions)})"
                )
                continue
            auto_generate = section.to_dict()
            auto_generate['exam_type'] = settings.exam_type
            generated.append(GeneratedSection(
                setup_id=section.id,
                name=f"{section.subject} Section",
                marks=round_half_up(100 / section.question_count),
                negative_marks=round_half_up(100 / section.question_count * 0.25),
                questions=questions,
                auto_generate=auto_generate,
            ))

        if shortfalls:
            raise GenerationError(shortfalls)

        logger.info(f"Generated {len(generated)} section(s) for {settings.exam_type} "
                    f"with {sum(len(section.questions) for section in generated)} questions")
        return generated
