"""
Print layout and PDF export of a quiz.

Questions are numbered continuously across sections. Page breaking is
left to reportlab's document flow.
"""
from datetime import date
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import KeepTogether, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from quizbank.config import config
from quizbank.quiz.models import Quiz


def _format_marks(value) -> str:
    number = float(value or 0)
    return f"{number:g}"


def build_print_layout(quiz: Quiz, include_answer_key: bool = False, batch: str | None = None,
                       test_date: str | None = None) -> dict:
    """
    Describe the printed paper.

    Args:
        quiz: Quiz to print
        include_answer_key: Append the correct answers
        batch: Overrides the quiz batch on the paper
        test_date: Date printed in the test details, today by default
    """
    sections = []
    answer_key = []
    number = 0
    for section in quiz.sections:
        questions = []
        for entry in section.questions:
            number += 1
            question = entry.question
            questions.append({
                'number': number,
                'id': question.id,
                'question_text': question.question_text,
                'question_type': question.question_type,
                'options': [{'letter': letter, 'text': text} for letter, text in question.get_options().items()],
            })
            if include_answer_key:
                answer_key.append({
                    'number': number,
                    'correct_answers': list(question.correct_answers or []),
                    'explanation': question.explanation,
                })
        sections.append({
            'name': section.name,
            'instructions': list(section.instructions or []),
            'marking_scheme': {
                'marks': float(section.marks or 0),
                'negative_marks': float(section.negative_marks or 0),
            },
            'questions': questions,
        })

    layout = {
        'institute': {
            'name': config.INSTITUTE_NAME,
            'tagline': config.INSTITUTE_TAGLINE,
        },
        'test_details': {
            'title': quiz.title,
            'subject': quiz.subject,
            'unit': quiz.unit,
            'batch': batch if batch is not None else (quiz.batch or ''),
            'date': test_date or date.today().isoformat(),
            'total_duration': quiz.total_duration,
            'total_marks': float(quiz.total_marks or 0),
            'question_count': number,
        },
        'instructions': list(quiz.instructions or []),
        'sections': sections,
    }
    if include_answer_key:
        layout['answer_key'] = answer_key
    return layout


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name='Institute', parent=styles['Title'], fontSize=18, spaceAfter=2))
    styles.add(ParagraphStyle(name='Tagline', parent=styles['Normal'], alignment=1, textColor=colors.grey))
    styles.add(ParagraphStyle(name='SectionTitle', parent=styles['Heading2'], spaceBefore=10))
    styles.add(ParagraphStyle(name='QuestionText', parent=styles['Normal'], spaceBefore=6, leading=14))
    styles.add(ParagraphStyle(name='Option', parent=styles['Normal'], leftIndent=14, leading=13))
    styles.add(ParagraphStyle(name='Small', parent=styles['Normal'], fontSize=9, textColor=colors.grey))
    return styles


def render_pdf(layout: dict) -> bytes:
    """Render a print layout to an A4 PDF."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=layout['test_details']['title'],
    )
    styles = _styles()
    elements = []

    institute = layout['institute']
    if institute.get('name'):
        elements.append(Paragraph(escape(institute['name']), styles['Institute']))
    if institute.get('tagline'):
        elements.append(Paragraph(escape(institute['tagline']), styles['Tagline']))

    details = layout['test_details']
    elements.append(Paragraph(f"<b>{escape(details['title'])}</b>", styles['Heading1']))
    details_table = Table(
        [[
            f"Batch: {details['batch'] or '-'}",
            f"Date: {details['date']}",
            f"Duration: {details['total_duration']} min",
            f"Max. Marks: {_format_marks(details['total_marks'])}",
        ]],
        colWidths=[doc.width / 4] * 4,
    )
    details_table.setStyle(TableStyle([
        ('LINEABOVE', (0, 0), (-1, 0), 0.75, colors.black),
        ('LINEBELOW', (0, 0), (-1, 0), 0.75, colors.black),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
    ]))
    elements.append(details_table)
    elements.append(Spacer(1, 6))

    if layout['instructions']:
        elements.append(Paragraph('<b>Instructions</b>', styles['Normal']))
        for index, line in enumerate(layout['instructions'], start=1):
            elements.append(Paragraph(f"{index}. {escape(line)}", styles['Small']))

    for section in layout['sections']:
        scheme = section['marking_scheme']
        elements.append(Paragraph(escape(section['name']), styles['SectionTitle']))
        elements.append(Paragraph(
            f"Marking scheme: +{_format_marks(scheme['marks'])} for a correct answer, "
            f"-{_format_marks(scheme['negative_marks'])} for a wrong answer",
            styles['Small'],
        ))
        for line in section['instructions']:
            elements.append(Paragraph(escape(line), styles['Small']))

        for question in section['questions']:
            block = [Paragraph(
                f"<b>Q{question['number']}.</b> {escape(question['question_text'])} "
                f"<font size=8 color='grey'>[{_format_marks(scheme['marks'])} marks]</font>",
                styles['QuestionText'],
            )]
            for option in question['options']:
                block.append(Paragraph(f"({option['letter']}) {escape(option['text'] or '')}", styles['Option']))
            if not question['options']:
                block.append(Paragraph('Answer: ____________', styles['Option']))
            elements.append(KeepTogether(block))

    if layout.get('answer_key') is not None:
        elements.append(Spacer(1, 12))
        elements.append(Paragraph('Answer Key', styles['SectionTitle']))
        rows = [['Q.', 'Answer']] + [
            [str(item['number']), ', '.join(item['correct_answers'])] for item in layout['answer_key']
        ]
        key_table = Table(rows, colWidths=[20 * mm, 40 * mm], repeatRows=1)
        key_table.setStyle(TableStyle([
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
            ('BACKGROUND', (0, 0), (-1, 0), colors.lightgrey),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
        ]))
        elements.append(key_table)

    doc.build(elements)
    return buffer.getvalue()
