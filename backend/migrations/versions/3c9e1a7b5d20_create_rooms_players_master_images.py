"""create master_images, rooms and players

Revision ID: 3c9e1a7b5d20
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9e1a7b5d20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'master_images' not in existing_tables:
        op.create_table(
            'master_images',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('name', sa.String(length=128), nullable=False, server_default=''),
            sa.Column('original_url', sa.Text(), nullable=False),
            sa.Column('modified_url', sa.Text(), nullable=False),
            sa.Column('differences', sa.JSON(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        )

    if 'rooms' not in existing_tables:
        op.create_table(
            'rooms',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('code', sa.String(length=6), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='LOBBY'),
            sa.Column('admin_id', sa.String(length=36), nullable=True),
            sa.Column('image_queue', sa.JSON(), nullable=False),
            sa.Column('settings', sa.JSON(), nullable=False),
            sa.Column('current_image_idx', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index('ix_rooms_code', 'rooms', ['code'], unique=True)

    if 'players' not in existing_tables:
        op.create_table(
            'players',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('room_id', sa.String(length=36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
            sa.Column('nickname', sa.String(length=64), nullable=False),
            sa.Column('avatar_id', sa.String(length=64), nullable=True),
            sa.Column('socket_id', sa.String(length=64), nullable=True),
            sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_online', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index('ix_players_room_id', 'players', ['room_id'])


def downgrade():
    op.drop_index('ix_players_room_id', table_name='players')
    op.drop_table('players')
    op.drop_index('ix_rooms_code', table_name='rooms')
    op.drop_table('rooms')
    op.drop_table('master_images')
