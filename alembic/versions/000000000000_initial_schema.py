"""initial_schema

Revision ID: 000000000000
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '000000000000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'data_sources',
        sa.Column('id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('source_type', sa.String(length=50), nullable=False, comment='county-website, state-records, tax-database, api, pdf'),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('county', sa.String(length=100), nullable=True),
        sa.Column('collector_type', sa.String(length=100), nullable=False, comment='Registered collector name'),
        sa.Column('schedule', JSONType, nullable=False),
        sa.Column('metadata', JSONType, nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, comment='active, warning, error, inactive'),
        sa.Column('last_collected', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_scheduled_run', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_data_sources_status', 'data_sources', ['status'], unique=False)
    op.create_index('idx_data_sources_collector_type', 'data_sources', ['collector_type'], unique=False)

    op.create_table(
        'properties',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('record_key', sa.String(length=512), nullable=False, comment='STATE|COUNTY|parcel:/account:/address: identity'),
        sa.Column('parcel_id', sa.String(length=100), nullable=True),
        sa.Column('tax_account_number', sa.String(length=100), nullable=True),
        sa.Column('owner_name', sa.String(length=255), nullable=True),
        sa.Column('property_address', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('county', sa.String(length=100), nullable=False),
        sa.Column('zip_code', sa.String(length=10), nullable=True),
        sa.Column('property_type', sa.String(length=50), nullable=True),
        sa.Column('legal_description', sa.Text(), nullable=True),
        sa.Column('property_details', JSONType, nullable=False),
        sa.Column('tax_info', JSONType, nullable=False),
        sa.Column('sale_info', JSONType, nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('source_id', sa.String(length=100), nullable=True),
        sa.Column('raw_data', JSONType, nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('record_key'),
    )
    op.create_index('idx_properties_parcel_id', 'properties', ['parcel_id'], unique=False)
    op.create_index('idx_properties_state_county', 'properties', ['state', 'county'], unique=False)
    op.create_index('idx_properties_source_id', 'properties', ['source_id'], unique=False)

    op.create_table(
        'collection_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('source_id', sa.String(length=100), nullable=True),
        sa.Column('collector_name', sa.String(length=100), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, comment='success, partial, error'),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('stats', JSONType, nullable=False),
        sa.Column('error_log', JSONType, nullable=False),
        sa.Column('property_keys', JSONType, nullable=False),
        sa.Column('raw_data_path', sa.Text(), nullable=True),
        sa.Column('used_sample_data', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_collection_runs_timestamp', 'collection_runs', ['timestamp'], unique=False)
    op.create_index('idx_collection_runs_source_id', 'collection_runs', ['source_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_collection_runs_source_id', table_name='collection_runs')
    op.drop_index('idx_collection_runs_timestamp', table_name='collection_runs')
    op.drop_table('collection_runs')

    op.drop_index('idx_properties_source_id', table_name='properties')
    op.drop_index('idx_properties_state_county', table_name='properties')
    op.drop_index('idx_properties_parcel_id', table_name='properties')
    op.drop_table('properties')

    op.drop_index('idx_data_sources_collector_type', table_name='data_sources')
    op.drop_index('idx_data_sources_status', table_name='data_sources')
    op.drop_table('data_sources')
