"""initial quiz bank schema

Revision ID: 3f9a7c21d4e8
Revises:
Create Date: 2026-10-18 10:12:41.503318

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision = '3f9a7c21d4e8'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    inspector = inspect(op.get_bind())
    tables = inspector.get_table_names()

    if 'users' not in tables:
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('password_hash', sa.String(length=255), nullable=False),
            sa.Column('full_name', sa.String(length=255), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('user_type', sa.String(length=20), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)
        op.create_index('ix_users_user_type', 'users', ['user_type'], unique=False)

    if 'tags' not in tables:
        op.create_table('tags',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('category', sa.String(length=20), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('parent_name', sa.String(length=255), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('category', 'parent_name', 'name', name='uq_tag_category_parent_name')
        )
        op.create_index('ix_tags_category', 'tags', ['category'], unique=False)
        op.create_index('ix_tags_parent_name', 'tags', ['parent_name'], unique=False)
        op.create_index('ix_tags_category_parent', 'tags', ['category', 'parent_name'], unique=False)

    if 'questions' not in tables:
        op.create_table('questions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('question_text', sa.Text(), nullable=False),
            sa.Column('option_a', sa.Text(), nullable=True),
            sa.Column('option_b', sa.Text(), nullable=True),
            sa.Column('option_c', sa.Text(), nullable=True),
            sa.Column('option_d', sa.Text(), nullable=True),
            sa.Column('correct_answers', sa.JSON(), nullable=False),
            sa.Column('explanation', sa.Text(), nullable=True),
            sa.Column('exam_type', sa.String(length=255), nullable=False),
            sa.Column('subject', sa.String(length=255), nullable=False),
            sa.Column('chapter', sa.String(length=255), nullable=False),
            sa.Column('topic', sa.String(length=255), nullable=False),
            sa.Column('difficulty_level', sa.String(length=10), nullable=False),
            sa.Column('question_type', sa.String(length=10), nullable=False),
            sa.Column('source', sa.String(length=255), nullable=True),
            sa.Column('created_by', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        for column in ('exam_type', 'subject', 'chapter', 'topic', 'difficulty_level', 'question_type', 'created_at'):
            op.create_index(f'ix_questions_{column}', 'questions', [column], unique=False)
        op.create_index('ix_questions_exam_subject_chapter', 'questions', ['exam_type', 'subject', 'chapter'], unique=False)

    if 'quizzes' not in tables:
        op.create_table('quizzes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('subject', sa.String(length=255), nullable=True),
            sa.Column('batch', sa.String(length=255), nullable=True),
            sa.Column('unit', sa.String(length=255), nullable=True),
            sa.Column('instructions', sa.JSON(), nullable=False),
            sa.Column('total_duration', sa.Integer(), nullable=False),
            sa.Column('total_marks', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('created_by', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quizzes_created_by', 'quizzes', ['created_by'], unique=False)
        op.create_index('ix_quizzes_created_at', 'quizzes', ['created_at'], unique=False)

    if 'quiz_sections' not in tables:
        op.create_table('quiz_sections',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('instructions', sa.JSON(), nullable=False),
            sa.Column('duration', sa.Integer(), nullable=True),
            sa.Column('timer_enabled', sa.Boolean(), nullable=False),
            sa.Column('marks', sa.Numeric(precision=6, scale=2), nullable=False),
            sa.Column('negative_marks', sa.Numeric(precision=6, scale=2), nullable=False),
            sa.Column('order_index', sa.Integer(), nullable=False),
            sa.Column('auto_generate', sa.JSON(), nullable=True),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quiz_sections_quiz_id', 'quiz_sections', ['quiz_id'], unique=False)
        op.create_index('ix_quiz_sections_order_index', 'quiz_sections', ['order_index'], unique=False)
        op.create_index('ix_quiz_sections_quiz_order', 'quiz_sections', ['quiz_id', 'order_index'], unique=False)

    if 'quiz_section_questions' not in tables:
        op.create_table('quiz_section_questions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('section_id', sa.Integer(), nullable=False),
            sa.Column('question_id', sa.Integer(), nullable=False),
            sa.Column('order_index', sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(['section_id'], ['quiz_sections.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('section_id', 'question_id', name='uq_section_question')
        )
        op.create_index('ix_quiz_section_questions_section_id', 'quiz_section_questions', ['section_id'], unique=False)
        op.create_index('ix_quiz_section_questions_question_id', 'quiz_section_questions', ['question_id'], unique=False)
        op.create_index('ix_section_questions_section_order', 'quiz_section_questions', ['section_id', 'order_index'], unique=False)

    if 'quiz_attempts' not in tables:
        op.create_table('quiz_attempts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('current_question_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('started_at', sa.DateTime(), nullable=True),
            sa.Column('submitted_at', sa.DateTime(), nullable=True),
            sa.Column('auto_submitted', sa.Boolean(), nullable=False),
            sa.Column('score', sa.Numeric(precision=10, scale=2), nullable=True),
            sa.Column('max_score', sa.Numeric(precision=10, scale=2), nullable=True),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quiz_attempts_quiz_id', 'quiz_attempts', ['quiz_id'], unique=False)
        op.create_index('ix_quiz_attempts_user_id', 'quiz_attempts', ['user_id'], unique=False)
        op.create_index('ix_quiz_attempts_status', 'quiz_attempts', ['status'], unique=False)
        op.create_index('ix_quiz_attempts_quiz_user', 'quiz_attempts', ['quiz_id', 'user_id'], unique=False)
        op.create_index('ix_quiz_attempts_user_status', 'quiz_attempts', ['user_id', 'status'], unique=False)

    if 'quiz_question_responses' not in tables:
        op.create_table('quiz_question_responses',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('attempt_id', sa.Integer(), nullable=False),
            sa.Column('question_id', sa.Integer(), nullable=False),
            sa.Column('section_id', sa.Integer(), nullable=False),
            sa.Column('selected_answers', sa.JSON(), nullable=False),
            sa.Column('visited', sa.Boolean(), nullable=False),
            sa.Column('answered', sa.Boolean(), nullable=False),
            sa.Column('marked_for_review', sa.Boolean(), nullable=False),
            sa.Column('is_correct', sa.Boolean(), nullable=True),
            sa.Column('marks_awarded', sa.Numeric(precision=6, scale=2), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['attempt_id'], ['quiz_attempts.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['section_id'], ['quiz_sections.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('attempt_id', 'question_id', name='uq_attempt_question')
        )
        op.create_index('ix_quiz_question_responses_attempt_id', 'quiz_question_responses', ['attempt_id'], unique=False)
        op.create_index('ix_quiz_question_responses_question_id', 'quiz_question_responses', ['question_id'], unique=False)


def downgrade():
    op.drop_table('quiz_question_responses')
    op.drop_table('quiz_attempts')
    op.drop_table('quiz_section_questions')
    op.drop_table('quiz_sections')
    op.drop_table('quizzes')
    op.drop_table('questions')
    op.drop_table('tags')
    op.drop_table('users')
