"""
Test cases for the print layout and PDF export.
"""
from datetime import date

from quizbank.quiz.printing import render_pdf


class TestPrintLayout:
    """Test cases for the print layout."""

    def test_layout(self, educator_client, sample_quiz, question_pool):
        response = educator_client.get(f"/api/quizzes/{sample_quiz['id']}/print")
        assert response.status_code == 200
        layout = response.get_json()['layout']

        assert layout['institute'] == {'name': 'Test Institute', 'tagline': 'Practice makes perfect'}
        details = layout['test_details']
        assert details['title'] == 'Weekly Test'
        assert details['batch'] == '2026-A'
        assert details['date'] == date.today().isoformat()
        assert details['total_duration'] == 30
        assert details['total_marks'] == 10.0
        assert details['question_count'] == 3
        assert layout['instructions'] == ['All questions are compulsory']
        assert 'answer_key' not in layout

        section_a, section_b = layout['sections']
        assert section_a['marking_scheme'] == {'marks': 4.0, 'negative_marks': 1.0}
        assert [q['number'] for q in section_a['questions']] == [1, 2]
        assert [q['number'] for q in section_b['questions']] == [3]
        assert section_a['questions'][0]['options'][1] == {'letter': 'B', 'text': 'Newton'}
        assert section_b['questions'][0]['options'] == []

    def test_answer_key_and_overrides(self, educator_client, sample_quiz, question_pool):
        response = educator_client.get(
            f"/api/quizzes/{sample_quiz['id']}/print?answer_key=true&batch=2026-B&date=2026-11-02"
        )
        layout = response.get_json()['layout']
        assert layout['test_details']['batch'] == '2026-B'
        assert layout['test_details']['date'] == '2026-11-02'
        assert layout['answer_key'] == [
            {'number': 1, 'correct_answers': ['B'], 'explanation': 'SI unit of force'},
            {'number': 2, 'correct_answers': ['A', 'C'], 'explanation': None},
            {'number': 3, 'correct_answers': ['9.8'], 'explanation': 'Standard value'},
        ]

    def test_students_cannot_print(self, student_client, sample_quiz):
        assert student_client.get(f"/api/quizzes/{sample_quiz['id']}/print").status_code == 403

    def test_missing_quiz(self, educator_client):
        assert educator_client.get('/api/quizzes/999/print').status_code == 404


class TestPdfExport:
    """Test cases for the PDF rendering."""

    def test_pdf_endpoint(self, educator_client, sample_quiz):
        response = educator_client.get(f"/api/quizzes/{sample_quiz['id']}/pdf?answer_key=1")
        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.headers['Content-Disposition'] == f"inline; filename=quiz_{sample_quiz['id']}.pdf"
        assert response.data.startswith(b'%PDF')

    def test_render_escapes_markup(self):
        layout = {
            'institute': {'name': 'R&D <Academy>', 'tagline': ''},
            'test_details': {
                'title': 'Inequalities', 'subject': 'Maths', 'unit': None, 'batch': '', 'date': '2026-10-18',
                'total_duration': 15, 'total_marks': 2.0, 'question_count': 1,
            },
            'instructions': ['Use $x < y$ notation'],
            'sections': [{
                'name': 'Section 1',
                'instructions': [],
                'marking_scheme': {'marks': 2.0, 'negative_marks': 0.5},
                'questions': [{
                    'number': 1, 'id': 1, 'question_text': 'Is $a < b$ & $b < c$?', 'question_type': 'MCQ',
                    'options': [{'letter': letter, 'text': text} for letter, text in
                                zip('ABCD', ('Yes', 'No', '<maybe>', 'Unknown'))],
                }],
            }],
            'answer_key': [{'number': 1, 'correct_answers': ['A'], 'explanation': None}],
        }
        pdf = render_pdf(layout)
        assert pdf.startswith(b'%PDF')
        assert len(pdf) > 1000
