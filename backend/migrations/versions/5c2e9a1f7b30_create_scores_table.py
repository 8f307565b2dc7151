"""create scores table

Revision ID: 5c2e9a1f7b30
Revises:
Create Date: 2026-02-14 18:20:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a1f7b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)

    # AUTO_CREATE_TABLES may already have built it
    if 'scores' in set(insp.get_table_names()):
        return

    op.create_table(
        'scores',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=40), nullable=False),
        sa.Column('candles', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('time_ms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('email', sa.String(length=254), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_scores_created_at', 'scores', ['created_at'])
    op.create_index('ix_scores_ranking', 'scores', ['candles', 'time_ms'])


def downgrade():
    op.drop_index('ix_scores_ranking', table_name='scores')
    op.drop_index('ix_scores_created_at', table_name='scores')
    op.drop_table('scores')
