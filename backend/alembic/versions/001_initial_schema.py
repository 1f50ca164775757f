"""Initial schema

Revision ID: 001
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


license_type = sa.Enum('A', 'B', 'BOTH', name='licensetype')
file_kind = sa.Enum('PDF', 'IMAGE', 'TEXT', name='filekind')
difficulty = sa.Enum('EASY', 'MEDIUM', 'HARD', name='difficulty')


def upgrade() -> None:
    # Create students table (streak columns only; profiles are managed elsewhere)
    op.create_table(
        'students',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('streak_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('streak_freeze_available', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('last_challenge_completed_on', sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_students_email', 'students', ['email'], unique=True)

    # Create handouts table
    op.create_table(
        'handouts',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('file_path', sa.String(500), nullable=False),
        sa.Column('file_type', file_kind, nullable=False),
        sa.Column('license_type', license_type, nullable=False),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        sa.Column('is_processed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Create handout_chunks table
    op.create_table(
        'handout_chunks',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('handout_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('chunk_index', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('token_count', sa.Integer(), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('embedding_model', sa.String(100), nullable=True),
        sa.Column('embedded_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['handout_id'], ['handouts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('handout_id', 'chunk_index', name='uq_handout_chunk_index')
    )
    op.create_index('ix_handout_chunks_handout_id', 'handout_chunks', ['handout_id'])
    # Full-text search over chunk content
    op.execute(
        "CREATE INDEX ix_handout_chunks_content_fts ON handout_chunks "
        "USING gin (to_tsvector('english', content))"
    )

    # Create questions table
    op.create_table(
        'questions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('handout_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('source_chunk_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('options', postgresql.ARRAY(sa.Text()), nullable=False),
        sa.Column('correct_answer', sa.String(1), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=False, server_default=''),
        sa.Column('difficulty', difficulty, nullable=False),
        sa.Column('license_type', license_type, nullable=False),
        sa.Column('topic_tags', postgresql.ARRAY(sa.Text()), nullable=False, server_default='{}'),
        sa.Column('is_ai_generated', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('verified_by', sa.String(255), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['handout_id'], ['handouts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_chunk_id'], ['handout_chunks.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_questions_handout_id', 'questions', ['handout_id'])
    op.create_index('ix_questions_difficulty', 'questions', ['difficulty'])
    op.create_index('ix_questions_license_type', 'questions', ['license_type'])

    # Create daily_challenges table
    op.create_table(
        'daily_challenges',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('challenge_date', sa.Date(), nullable=False),
        sa.Column('license_type', license_type, nullable=False),
        sa.Column('question_ids', postgresql.ARRAY(postgresql.UUID(as_uuid=True)), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('challenge_date', 'license_type', name='uq_challenge_date_license')
    )

    # Create challenge_responses table
    op.create_table(
        'challenge_responses',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('challenge_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('selected_answer', sa.String(1), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('answered_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['challenge_id'], ['daily_challenges.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'challenge_id', 'question_id', name='uq_challenge_response')
    )
    op.create_index('ix_challenge_responses_student_id', 'challenge_responses', ['student_id'])

    # Create chat_sessions table
    op.create_table(
        'chat_sessions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('title', sa.String(255), nullable=False, server_default='New Chat'),
        sa.Column('messages', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('context_chunks', postgresql.ARRAY(postgresql.UUID(as_uuid=True)), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_chat_sessions_student_id', 'chat_sessions', ['student_id'])


def downgrade() -> None:
    op.drop_table('chat_sessions')
    op.drop_table('challenge_responses')
    op.drop_table('daily_challenges')
    op.drop_table('questions')
    op.execute("DROP INDEX IF EXISTS ix_handout_chunks_content_fts")
    op.drop_table('handout_chunks')
    op.drop_table('handouts')
    op.drop_table('students')

    # Drop enums
    op.execute("DROP TYPE IF EXISTS difficulty")
    op.execute("DROP TYPE IF EXISTS filekind")
    op.execute("DROP TYPE IF EXISTS licensetype")
