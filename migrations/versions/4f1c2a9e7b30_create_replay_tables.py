"""create_replay_tables

Revision ID: 4f1c2a9e7b30
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '4f1c2a9e7b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

replay_job_status = sa.Enum('PENDING', 'RUNNING', 'COMPLETED', 'FAILED', 'CANCELLED', name='replayjobstatus')
schedule_type = sa.Enum('NONE', 'ONE_TIME', 'RECURRING', name='scheduletype')
history_action = sa.Enum(
    'ACTION_STARTED', 'MESSAGE_PROCESSED', 'ACTION_COMPLETED',
    'ACTION_FAILED', 'ACTION_CANCELLED', 'ACTION_RETRIED',
    name='historyaction',
)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('replay_jobs',
    sa.Column('id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
    sa.Column('cluster_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
    sa.Column('source_topic', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
    sa.Column('partitions', sa.JSON(), nullable=True),
    sa.Column('start_offset', sa.Integer(), nullable=True),
    sa.Column('start_timestamp', sa.DateTime(), nullable=True),
    sa.Column('end_offset', sa.Integer(), nullable=True),
    sa.Column('end_timestamp', sa.DateTime(), nullable=True),
    sa.Column('target_topic', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    sa.Column('consumer_group_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    sa.Column('filters', sa.JSON(), nullable=True),
    sa.Column('transformation', sa.JSON(), nullable=True),
    sa.Column('status', replay_job_status, nullable=False),
    sa.Column('progress', sa.JSON(), nullable=True),
    sa.Column('error_message', sa.String(length=2000), nullable=True),
    sa.Column('cancel_requested', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('schedule_type', schedule_type, nullable=False),
    sa.Column('scheduled_at', sa.DateTime(), nullable=True),
    sa.Column('schedule_cron', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    sa.Column('schedule_timezone', sqlmodel.sql.sqltypes.AutoString(), nullable=False, server_default='UTC'),
    sa.Column('next_scheduled_run', sa.DateTime(), nullable=True),
    sa.Column('last_scheduled_run', sa.DateTime(), nullable=True),
    sa.Column('max_retries', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('retry_delay_seconds', sa.Integer(), nullable=False, server_default='60'),
    sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('next_retry_at', sa.DateTime(), nullable=True),
    sa.Column('lease_owner', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    sa.Column('lease_expires_at', sa.DateTime(), nullable=True),
    sa.Column('created_by', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.Column('started_at', sa.DateTime(), nullable=True),
    sa.Column('completed_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_replay_jobs_cluster_id'), 'replay_jobs', ['cluster_id'], unique=False)
    op.create_index(op.f('ix_replay_jobs_source_topic'), 'replay_jobs', ['source_topic'], unique=False)
    op.create_index(op.f('ix_replay_jobs_status'), 'replay_jobs', ['status'], unique=False)
    op.create_index(op.f('ix_replay_jobs_next_scheduled_run'), 'replay_jobs', ['next_scheduled_run'], unique=False)
    op.create_index(op.f('ix_replay_jobs_created_by'), 'replay_jobs', ['created_by'], unique=False)
    op.create_index(op.f('ix_replay_jobs_created_at'), 'replay_jobs', ['created_at'], unique=False)

    op.create_table('replay_job_history',
    sa.Column('id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
    sa.Column('replay_job_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
    sa.Column('action', history_action, nullable=False),
    sa.Column('message_count', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('throughput', sa.Float(), nullable=True),
    sa.Column('timestamp', sa.DateTime(), nullable=False),
    sa.Column('details', sa.JSON(), nullable=True),
    sa.ForeignKeyConstraint(['replay_job_id'], ['replay_jobs.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_replay_job_history_job_timestamp', 'replay_job_history', ['replay_job_id', 'timestamp'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_replay_job_history_job_timestamp', table_name='replay_job_history')
    op.drop_table('replay_job_history')
    op.drop_index(op.f('ix_replay_jobs_created_at'), table_name='replay_jobs')
    op.drop_index(op.f('ix_replay_jobs_created_by'), table_name='replay_jobs')
    op.drop_index(op.f('ix_replay_jobs_next_scheduled_run'), table_name='replay_jobs')
    op.drop_index(op.f('ix_replay_jobs_status'), table_name='replay_jobs')
    op.drop_index(op.f('ix_replay_jobs_source_topic'), table_name='replay_jobs')
    op.drop_index(op.f('ix_replay_jobs_cluster_id'), table_name='replay_jobs')
    op.drop_table('replay_jobs')
    history_action.drop(op.get_bind(), checkfirst=True)
    schedule_type.drop(op.get_bind(), checkfirst=True)
    replay_job_status.drop(op.get_bind(), checkfirst=True)
