"""initial users, routes, checkpoints, rooms, submissions, positions

Revision ID: 5c0e7a91b2d4
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c0e7a91b2d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False),
        sa.Column('games_played', sa.Integer(), nullable=False),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    op.create_table(
        'route',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('city', sa.String(length=120), nullable=False),
        sa.Column('theme', sa.String(length=120), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('difficulty', sa.String(length=16), nullable=False),
        sa.Column('created_by', sa.String(length=64), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    )

    op.create_table(
        'checkpoint',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('route_id', sa.String(length=64), sa.ForeignKey('route.id'), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('challenge_type', sa.String(length=32), nullable=False),
        sa.Column('challenge_question', sa.Text(), nullable=True),
        sa.Column('challenge_answer', sa.Text(), nullable=True),
        sa.Column('challenge_options', sa.Text(), nullable=True),
        sa.Column('challenge_hint', sa.Text(), nullable=True),
        sa.Column('challenge_photo_prompt', sa.Text(), nullable=True),
    )
    op.create_index('ix_checkpoint_route_id', 'checkpoint', ['route_id'])

    op.create_table(
        'room',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('route_id', sa.String(length=64), sa.ForeignKey('route.id'), nullable=False),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('created_by', sa.String(length=64), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('max_players', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_room_code', 'room', ['code'], unique=True)

    op.create_table(
        'room_player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.String(length=64), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('user_id', sa.String(length=64), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('room_id', 'user_id', name='uq_room_player'),
    )
    op.create_index('ix_room_player_room_id', 'room_player', ['room_id'])

    op.create_table(
        'submission',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('room_id', sa.String(length=64), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('player_id', sa.String(length=64), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('checkpoint_id', sa.String(length=64), sa.ForeignKey('checkpoint.id'), nullable=False),
        sa.Column('answer', sa.Text(), nullable=True),
        sa.Column('photo_url', sa.String(length=512), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_submission_room_id', 'submission', ['room_id'])
    op.create_index('ix_submission_player_id', 'submission', ['player_id'])

    op.create_table(
        'player_position',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('player_id', sa.String(length=64), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('room_id', sa.String(length=64), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('accuracy', sa.Float(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('player_id', 'room_id', name='uq_player_position'),
    )
    op.create_index('ix_player_position_room_id', 'player_position', ['room_id'])


def downgrade():
    op.drop_table('player_position')
    op.drop_table('submission')
    op.drop_table('room_player')
    op.drop_table('room')
    op.drop_table('checkpoint')
    op.drop_table('route')
    op.drop_table('user')
