"""create users, roles, sessions, messages and system prompts

Revision ID: 20251018_voice_coach_tables
Revises:
Create Date: 2025-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20251018_voice_coach_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(25), primary_key=True, index=True),
        sa.Column('email', sa.String(255), nullable=True, unique=True, index=True),
        sa.Column('clerk_id', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()')),
    )

    op.create_table(
        'user_roles',
        sa.Column('id', sa.String(25), primary_key=True, index=True),
        sa.Column('user_id', sa.String(25), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()')),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),
    )

    op.create_table(
        'sessions',
        sa.Column('id', sa.String(25), primary_key=True, index=True),
        sa.Column('user_id', sa.String(25), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),
        sa.Column('started_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False, index=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('main_goals', sa.JSON(), nullable=True),
        sa.Column('topics_discussed', sa.JSON(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('feedback', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_sessions_user_started', 'sessions', ['user_id', 'started_at'])
    op.create_index('ix_sessions_user_status', 'sessions', ['user_id', 'status'])

    op.create_table(
        'messages',
        sa.Column('id', sa.String(25), primary_key=True, index=True),
        sa.Column('session_id', sa.String(25), sa.ForeignKey('sessions.id'), nullable=False, index=True),
        sa.Column('sender', sa.String(10), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_messages_session_created', 'messages', ['session_id', 'created_at'])

    op.create_table(
        'system_prompts',
        sa.Column('id', sa.String(25), primary_key=True, index=True),
        sa.Column('name', sa.String(255), nullable=False, server_default='Default'),
        sa.Column('prompt_text', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.false(), index=True),
        sa.Column('created_by', sa.String(25), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()')),
    )
    # At most one active prompt
    op.create_index(
        'uq_system_prompts_single_active',
        'system_prompts',
        ['is_active'],
        unique=True,
        postgresql_where=sa.text('is_active')
    )


def downgrade() -> None:
    op.drop_index('uq_system_prompts_single_active', table_name='system_prompts')
    op.drop_table('system_prompts')

    op.drop_index('ix_messages_session_created', table_name='messages')
    op.drop_table('messages')

    op.drop_index('ix_sessions_user_status', table_name='sessions')
    op.drop_index('ix_sessions_user_started', table_name='sessions')
    op.drop_table('sessions')

    op.drop_table('user_roles')
    op.drop_table('users')
