"""request handling tables: statuses, management, offers, images"""

from alembic import op
import sqlalchemy as sa
from typing import Sequence, Union

revision: str = '20261019_01'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # owned by the intake form; created here so a fresh database is usable
    op.create_table(
        'requests',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('license_plate', sa.String()),
        sa.Column('km', sa.Integer()),
        sa.Column('make', sa.String()),
        sa.Column('model', sa.String()),
        sa.Column('registration_year', sa.Integer()),
        sa.Column('engine_size', sa.Integer()),
        sa.Column('fuel_type', sa.Integer()),
        sa.Column('transmission_type', sa.Integer()),
        sa.Column('car_condition', sa.Integer()),
        sa.Column('engine_condition', sa.Integer()),
        sa.Column('interior_conditions', sa.Text()),
        sa.Column('exterior_conditions', sa.Text()),
        sa.Column('mechanical_conditions', sa.Text()),
        sa.Column('cap', sa.String()),
        sa.Column('city', sa.String()),
        sa.Column('first_name', sa.String()),
        sa.Column('last_name', sa.String()),
        sa.Column('email', sa.String()),
        sa.Column('phone', sa.String()),
        sa.Column('desired_price', sa.Float()),
    )
    op.create_table(
        'request_statuses',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('request_id', sa.String(), sa.ForeignKey('requests.id'), nullable=False),
        sa.Column('status', sa.Integer(), nullable=False),
        sa.Column('change_date', sa.DateTime(), nullable=False),
        sa.Column('final_outcome', sa.Integer(), nullable=True),
        sa.Column('close_reason', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
    )
    op.create_index('ix_request_statuses_request_id', 'request_statuses', ['request_id'])
    op.create_index('ix_request_statuses_request_change', 'request_statuses', ['request_id', 'change_date'])
    op.create_table(
        'request_managements',
        sa.Column('request_id', sa.String(), sa.ForeignKey('requests.id'), primary_key=True),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('range_min', sa.Float(), nullable=False, server_default='0'),
        sa.Column('range_max', sa.Float(), nullable=False, server_default='0'),
        sa.Column('registration_cost', sa.Float(), nullable=False, server_default='0'),
        sa.Column('transport_cost', sa.Float(), nullable=False, server_default='0'),
        sa.Column('purchase_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('sale_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('close_reason', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_table(
        'request_offers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('request_id', sa.String(), sa.ForeignKey('requests.id'), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('offer_date', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_request_offers_request_id', 'request_offers', ['request_id'])
    op.create_table(
        'request_images',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('request_id', sa.String(), sa.ForeignKey('requests.id'), nullable=False),
        sa.Column('name', sa.String(), nullable=False, unique=True),
    )
    op.create_index('ix_request_images_request_id', 'request_images', ['request_id'])


def downgrade() -> None:
    op.drop_index('ix_request_images_request_id', table_name='request_images')
    op.drop_table('request_images')
    op.drop_index('ix_request_offers_request_id', table_name='request_offers')
    op.drop_table('request_offers')
    op.drop_table('request_managements')
    op.drop_index('ix_request_statuses_request_change', table_name='request_statuses')
    op.drop_index('ix_request_statuses_request_id', table_name='request_statuses')
    op.drop_table('request_statuses')
    op.drop_table('requests')
