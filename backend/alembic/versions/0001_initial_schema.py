"""Initial schema - users, content, quizzes, attempts and communities

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'content_status_enum': ('processing', 'processed', 'failed'),
    'activity_type_enum': ('reading', 'quiz'),
    'quiz_status_enum': ('draft', 'published', 'archived'),
    'quiz_visibility_enum': ('public', 'private'),
    'difficulty_enum': ('easy', 'medium', 'hard'),
    'question_type_enum': ('multiple-choice', 'true-false', 'short-answer'),
    'attempt_status_enum': ('in-progress', 'completed', 'abandoned', 'timed-out'),
    'member_role_enum': ('member', 'moderator', 'admin'),
    'message_type_enum': ('general', 'quiz-discussion', 'announcement'),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    # ── Create enums ──────────────────────────────────────────────────
    for name, values in ENUMS.items():
        labels = ", ".join(f"'{v}'" for v in values)
        op.execute(f"""
            DO $$ BEGIN
                CREATE TYPE {name} AS ENUM ({labels});
            EXCEPTION WHEN duplicate_object THEN null;
            END $$;
        """)

    # ── users table ───────────────────────────────────────────────────
    op.create_table(
        'users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('external_id', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('username', sa.String(20), nullable=True),
        sa.Column('profile_image', sa.String(500), nullable=True),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_external_id', 'users', ['external_id'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    # ── contents table ────────────────────────────────────────────────
    op.create_table(
        'contents',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('owner_id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('file_name', sa.String(255), nullable=True),
        sa.Column('file_type', sa.String(20), nullable=False, server_default='text'),
        sa.Column('original_text', sa.Text(), nullable=False),
        sa.Column('category', sa.String(100), nullable=False, server_default='General'),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('word_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reading_time_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('page_count', sa.Integer(), nullable=True),
        sa.Column('status', _enum('content_status_enum'), nullable=False, server_default='processing'),
        sa.Column('processing_error', sa.Text(), nullable=True),
        sa.Column('ai_summary', sa.JSON(), nullable=True),
        sa.Column('progress_percent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('time_spent_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_accessed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('has_quiz', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('quiz_id', sa.UUID(), nullable=True),
        sa.Column('quiz_total_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quiz_best_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quiz_passed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('quiz_last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('quiz_attempt_history', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contents_owner_id', 'contents', ['owner_id'])

    # ── communities table ─────────────────────────────────────────────
    op.create_table(
        'communities',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('category', sa.String(100), nullable=False, server_default='General'),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('is_private', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_by', sa.UUID(), nullable=False),
        sa.Column('member_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('content_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quiz_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('message_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_communities_name', 'communities', ['name'])

    # ── community_contents table ──────────────────────────────────────
    op.create_table(
        'community_contents',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('community_id', sa.UUID(), nullable=False),
        sa.Column('original_content_id', sa.UUID(), nullable=False),
        sa.Column('shared_by', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('category', sa.String(100), nullable=False, server_default='General'),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quizzes_generated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['community_id'], ['communities.id']),
        sa.ForeignKeyConstraint(['original_content_id'], ['contents.id']),
        sa.ForeignKeyConstraint(['shared_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('community_id', 'original_content_id', name='uq_community_content'),
    )
    op.create_index('ix_community_contents_community_id', 'community_contents', ['community_id'])

    # ── quizzes table ─────────────────────────────────────────────────
    op.create_table(
        'quizzes',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('owner_id', sa.UUID(), nullable=False),
        sa.Column('content_id', sa.UUID(), nullable=True),
        sa.Column('community_id', sa.UUID(), nullable=True),
        sa.Column('community_content_id', sa.UUID(), nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('difficulty', _enum('difficulty_enum'), nullable=False, server_default='medium'),
        sa.Column('category', sa.String(100), nullable=False, server_default='General'),
        sa.Column('is_custom', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('custom_topic', sa.String(500), nullable=True),
        sa.Column('visibility', _enum('quiz_visibility_enum'), nullable=False, server_default='private'),
        sa.Column('access_code', sa.String(6), nullable=True),
        sa.Column('status', _enum('quiz_status_enum'), nullable=False, server_default='draft'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('time_limit_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('passing_score', sa.Integer(), nullable=False, server_default='70'),
        sa.Column('allow_retakes', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('shuffle_questions', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('show_correct_answers', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('total_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('best_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pass_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('average_time_spent', sa.Float(), nullable=False, server_default='0'),
        sa.Column('last_taken_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
        sa.ForeignKeyConstraint(['content_id'], ['contents.id']),
        sa.ForeignKeyConstraint(['community_id'], ['communities.id']),
        sa.ForeignKeyConstraint(['community_content_id'], ['community_contents.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quizzes_owner_id', 'quizzes', ['owner_id'])
    op.create_index('ix_quizzes_content_id', 'quizzes', ['content_id'])
    op.create_index('ix_quizzes_community_id', 'quizzes', ['community_id'])
    op.create_index('ix_quizzes_access_code', 'quizzes', ['access_code'])

    # ── questions table ───────────────────────────────────────────────
    op.create_table(
        'questions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('quiz_id', sa.UUID(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('question_type', _enum('question_type_enum'), nullable=False, server_default='multiple-choice'),
        sa.Column('options', sa.JSON(), nullable=False),
        sa.Column('correct_answer', sa.Text(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('difficulty', _enum('difficulty_enum'), nullable=False, server_default='medium'),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('section', sa.String(100), nullable=True),
        sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_questions_quiz_id', 'questions', ['quiz_id'])

    # ── quiz_access table ─────────────────────────────────────────────
    op.create_table(
        'quiz_access',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('quiz_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('granted_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('quiz_id', 'user_id', name='uq_quiz_access'),
    )
    op.create_index('ix_quiz_access_quiz_id', 'quiz_access', ['quiz_id'])

    # ── quiz_attempts table ───────────────────────────────────────────
    op.create_table(
        'quiz_attempts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('quiz_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('attempt_number', sa.Integer(), nullable=False),
        sa.Column('status', _enum('attempt_status_enum'), nullable=False, server_default='in-progress'),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('percentage', sa.Integer(), nullable=True),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('passed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('time_spent_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_time_taken', sa.Integer(), nullable=True),
        sa.Column('section_scores', sa.JSON(), nullable=False),
        sa.Column('ai_summary', sa.JSON(), nullable=True),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('quiz_id', 'user_id', 'attempt_number', name='uq_attempt_number'),
    )
    op.create_index('ix_quiz_attempts_quiz_id', 'quiz_attempts', ['quiz_id'])
    op.create_index('ix_quiz_attempts_user_id', 'quiz_attempts', ['user_id'])
    # At most one in-progress attempt per (quiz, user).
    op.create_index(
        'uq_attempt_in_progress',
        'quiz_attempts',
        ['quiz_id', 'user_id'],
        unique=True,
        postgresql_where=sa.text("status = 'in-progress'"),
    )

    # ── attempt_answers table ─────────────────────────────────────────
    op.create_table(
        'attempt_answers',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('attempt_id', sa.UUID(), nullable=False),
        sa.Column('question_id', sa.UUID(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('section', sa.String(100), nullable=True),
        sa.Column('user_answer', sa.Text(), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=True),
        sa.Column('points_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('time_spent_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['attempt_id'], ['quiz_attempts.id']),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_attempt_answers_attempt_id', 'attempt_answers', ['attempt_id'])

    # ── study_activities table ────────────────────────────────────────
    op.create_table(
        'study_activities',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('content_id', sa.UUID(), nullable=True),
        sa.Column('quiz_id', sa.UUID(), nullable=True),
        sa.Column('activity_type', _enum('activity_type_enum'), nullable=False),
        sa.Column('minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['content_id'], ['contents.id']),
        sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_study_activities_user_id', 'study_activities', ['user_id'])
    op.create_index('ix_study_activities_occurred_at', 'study_activities', ['occurred_at'])

    # ── community_members table ───────────────────────────────────────
    op.create_table(
        'community_members',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('community_id', sa.UUID(), nullable=False),
        sa.Column('role', _enum('member_role_enum'), nullable=False, server_default='member'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('messages_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('content_shared', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quizzes_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quizzes_taken', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_active_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['community_id'], ['communities.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'community_id', name='uq_community_member'),
    )
    op.create_index('ix_community_members_user_id', 'community_members', ['user_id'])
    op.create_index('ix_community_members_community_id', 'community_members', ['community_id'])

    # ── community_messages table ──────────────────────────────────────
    op.create_table(
        'community_messages',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('community_id', sa.UUID(), nullable=False),
        sa.Column('quiz_id', sa.UUID(), nullable=True),
        sa.Column('author_id', sa.UUID(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('message_type', _enum('message_type_enum'), nullable=False, server_default='general'),
        sa.Column('parent_id', sa.UUID(), nullable=True),
        sa.Column('reply_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reactions', sa.JSON(), nullable=False),
        sa.Column('is_edited', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['community_id'], ['communities.id']),
        sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id']),
        sa.ForeignKeyConstraint(['author_id'], ['users.id']),
        sa.ForeignKeyConstraint(['parent_id'], ['community_messages.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_community_messages_community_id', 'community_messages', ['community_id'])
    op.create_index('ix_community_messages_quiz_id', 'community_messages', ['quiz_id'])
    op.create_index('ix_community_messages_created_at', 'community_messages', ['created_at'])


def downgrade() -> None:
    # Drop all tables in reverse order
    op.drop_table('community_messages')
    op.drop_table('community_members')
    op.drop_table('study_activities')
    op.drop_table('attempt_answers')
    op.drop_table('quiz_attempts')
    op.drop_table('quiz_access')
    op.drop_table('questions')
    op.drop_table('quizzes')
    op.drop_table('community_contents')
    op.drop_table('communities')
    op.drop_table('contents')
    op.drop_table('users')

    # Drop enums
    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name} CASCADE")
