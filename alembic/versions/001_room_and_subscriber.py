"""Create room and subscriber tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'room',
        sa.Column('roomId', sa.String(), primary_key=True),
        sa.Column('creationTime', sa.DateTime(timezone=True), nullable=True),
        sa.Column('lastUpdateTime', sa.DateTime(timezone=True), nullable=True),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('password', sa.String(), nullable=True),
        sa.Column('owner', sa.String(), nullable=True),
        sa.Column('vanity', sa.String(), nullable=True, unique=True),
        sa.Column('isSubRoom', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('roomTitle', sa.String(), nullable=True),
        sa.Column('roomDescription', sa.String(), nullable=True),
        sa.Column('mediaPath', sa.String(), nullable=True),
    )
    op.create_index('ix_room_owner', 'room', ['owner'])
    op.create_index('ix_room_lastUpdateTime', 'room', ['lastUpdateTime'])

    op.create_table(
        'subscriber',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('customerId', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('uid', sa.String(), nullable=True),
    )
    op.create_index('ix_subscriber_customerId', 'subscriber', ['customerId'])
    op.create_index('ix_subscriber_uid', 'subscriber', ['uid'])


def downgrade() -> None:
    op.drop_index('ix_subscriber_uid', table_name='subscriber')
    op.drop_index('ix_subscriber_customerId', table_name='subscriber')
    op.drop_table('subscriber')
    op.drop_index('ix_room_lastUpdateTime', table_name='room')
    op.drop_index('ix_room_owner', table_name='room')
    op.drop_table('room')
