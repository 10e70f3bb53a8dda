"""initial_pipeline_schema

Revision ID: 3f9c1a7d2b40
Revises:
Create Date: 2026-10-19 09:12:31.402118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c1a7d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema: complexes, listings, alerts, committee_hearings, batch_jobs."""
    op.create_table('complexes',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('name_key', sa.String(length=255), nullable=False),
    sa.Column('city', sa.String(length=100), nullable=False),
    sa.Column('region', sa.String(length=100), nullable=True),
    sa.Column('neighborhood', sa.String(length=100), nullable=True),
    sa.Column('addresses', sa.Text(), nullable=True),
    sa.Column('existing_units', sa.Integer(), nullable=True),
    sa.Column('planned_units', sa.Integer(), nullable=True),
    sa.Column('multiplier', sa.Float(), nullable=True),
    sa.Column('num_buildings', sa.Integer(), nullable=True),
    sa.Column('developer', sa.String(length=255), nullable=True),
    sa.Column('developer_strength', sa.String(length=20), nullable=True),
    sa.Column('developer_risk_level', sa.String(length=20), nullable=True),
    sa.Column('status', sa.String(length=30), nullable=False),
    sa.Column('plan_stage', sa.String(length=255), nullable=True),
    sa.Column('plan_number', sa.String(length=100), nullable=True),
    sa.Column('declaration_date', sa.Date(), nullable=True),
    sa.Column('local_committee_date', sa.Date(), nullable=True),
    sa.Column('district_committee_date', sa.Date(), nullable=True),
    sa.Column('national_committee_date', sa.Date(), nullable=True),
    sa.Column('certainty_factor', sa.Float(), nullable=False),
    sa.Column('signature_percent', sa.Float(), nullable=True),
    sa.Column('signature_source', sa.String(length=30), nullable=True),
    sa.Column('accurate_price_sqm', sa.Float(), nullable=True),
    sa.Column('city_avg_price_sqm', sa.Float(), nullable=True),
    sa.Column('actual_premium', sa.Float(), nullable=True),
    sa.Column('theoretical_premium_min', sa.Float(), nullable=True),
    sa.Column('theoretical_premium_max', sa.Float(), nullable=True),
    sa.Column('premium_gap', sa.Float(), nullable=True),
    sa.Column('price_trend', sa.String(length=20), nullable=True),
    sa.Column('transaction_count', sa.Integer(), nullable=True),
    sa.Column('news_sentiment', sa.String(length=20), nullable=True),
    sa.Column('has_negative_news', sa.Boolean(), nullable=True),
    sa.Column('has_enforcement_cases', sa.Boolean(), nullable=True),
    sa.Column('is_receivership', sa.Boolean(), nullable=True),
    sa.Column('has_bankruptcy_proceedings', sa.Boolean(), nullable=True),
    sa.Column('research_summary', sa.Text(), nullable=True),
    sa.Column('priority_score', sa.Integer(), nullable=True),
    sa.Column('priority_components', sa.JSON(), nullable=True),
    sa.Column('tier', sa.String(length=20), nullable=True),
    sa.Column('attractiveness_score', sa.Integer(), nullable=True),
    sa.Column('attractiveness_components', sa.JSON(), nullable=True),
    sa.Column('stress_max', sa.Integer(), nullable=True),
    sa.Column('stress_avg', sa.Float(), nullable=True),
    sa.Column('scored_at', sa.DateTime(), nullable=True),
    sa.Column('discovery_source', sa.String(length=50), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.Column('last_enriched_at', sa.DateTime(), nullable=True),
    sa.Column('last_committee_check_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('name_key', 'city', name='uq_complexes_name_city')
    )
    op.create_index(op.f('ix_complexes_city'), 'complexes', ['city'], unique=False)
    op.create_index(op.f('ix_complexes_status'), 'complexes', ['status'], unique=False)
    op.create_index(op.f('ix_complexes_priority_score'), 'complexes', ['priority_score'], unique=False)
    op.create_index(op.f('ix_complexes_tier'), 'complexes', ['tier'], unique=False)
    op.create_index(op.f('ix_complexes_attractiveness_score'), 'complexes', ['attractiveness_score'], unique=False)
    op.create_index(op.f('ix_complexes_discovery_source'), 'complexes', ['discovery_source'], unique=False)
    op.create_index('idx_complexes_priority_desc', 'complexes', [sa.text('priority_score DESC')], unique=False)

    op.create_table('listings',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('complex_id', sa.Integer(), nullable=False),
    sa.Column('source', sa.String(length=30), nullable=True),
    sa.Column('source_listing_id', sa.String(length=100), nullable=True),
    sa.Column('url', sa.String(length=500), nullable=True),
    sa.Column('asking_price', sa.Float(), nullable=True),
    sa.Column('original_price', sa.Float(), nullable=True),
    sa.Column('area_sqm', sa.Float(), nullable=True),
    sa.Column('rooms', sa.Float(), nullable=True),
    sa.Column('floor', sa.Integer(), nullable=True),
    sa.Column('first_seen', sa.Date(), nullable=True),
    sa.Column('last_seen', sa.Date(), nullable=True),
    sa.Column('days_on_market', sa.Integer(), nullable=True),
    sa.Column('price_changes', sa.Integer(), nullable=True),
    sa.Column('total_price_drop_percent', sa.Float(), nullable=True),
    sa.Column('description_snippet', sa.Text(), nullable=True),
    sa.Column('has_urgent_keywords', sa.Boolean(), nullable=True),
    sa.Column('urgent_keywords_found', sa.Text(), nullable=True),
    sa.Column('is_foreclosure', sa.Boolean(), nullable=True),
    sa.Column('is_inheritance', sa.Boolean(), nullable=True),
    sa.Column('stress_score', sa.Integer(), nullable=True),
    sa.Column('stress_time_score', sa.Integer(), nullable=True),
    sa.Column('stress_price_score', sa.Integer(), nullable=True),
    sa.Column('stress_indicator_score', sa.Integer(), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['complex_id'], ['complexes.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_listings_complex_id'), 'listings', ['complex_id'], unique=False)
    op.create_index(op.f('ix_listings_stress_score'), 'listings', ['stress_score'], unique=False)
    op.create_index(op.f('ix_listings_is_active'), 'listings', ['is_active'], unique=False)

    op.create_table('alerts',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('complex_id', sa.Integer(), nullable=True),
    sa.Column('listing_id', sa.Integer(), nullable=True),
    sa.Column('alert_type', sa.String(length=50), nullable=False),
    sa.Column('severity', sa.String(length=20), nullable=False),
    sa.Column('title', sa.String(length=500), nullable=False),
    sa.Column('message', sa.Text(), nullable=True),
    sa.Column('data', sa.JSON(), nullable=True),
    sa.Column('dedup_key', sa.String(length=200), nullable=True),
    sa.Column('is_read', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['complex_id'], ['complexes.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('dedup_key')
    )
    op.create_index(op.f('ix_alerts_complex_id'), 'alerts', ['complex_id'], unique=False)
    op.create_index(op.f('ix_alerts_severity'), 'alerts', ['severity'], unique=False)
    op.create_index(op.f('ix_alerts_is_read'), 'alerts', ['is_read'], unique=False)
    op.create_index(op.f('ix_alerts_created_at'), 'alerts', ['created_at'], unique=False)
    op.create_index('idx_alerts_complex_type_created', 'alerts', ['complex_id', 'alert_type', 'created_at'], unique=False)
    op.create_index('idx_alerts_unread', 'alerts', ['is_read', 'created_at'], unique=False)

    op.create_table('committee_hearings',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('complex_id', sa.Integer(), nullable=False),
    sa.Column('committee', sa.String(length=20), nullable=False),
    sa.Column('hearing_date', sa.Date(), nullable=False),
    sa.Column('agenda_item', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['complex_id'], ['complexes.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('complex_id', 'committee', 'hearing_date', name='uq_hearing_complex_committee_date')
    )
    op.create_index(op.f('ix_committee_hearings_complex_id'), 'committee_hearings', ['complex_id'], unique=False)
    op.create_index(op.f('ix_committee_hearings_hearing_date'), 'committee_hearings', ['hearing_date'], unique=False)

    op.create_table('batch_jobs',
    sa.Column('job_id', sa.String(length=64), nullable=False),
    sa.Column('kind', sa.String(length=20), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('mode', sa.String(length=20), nullable=False),
    sa.Column('complex_ids', sa.JSON(), nullable=False),
    sa.Column('selection', sa.JSON(), nullable=True),
    sa.Column('processed', sa.Integer(), nullable=False),
    sa.Column('succeeded', sa.Integer(), nullable=False),
    sa.Column('failed', sa.Integer(), nullable=False),
    sa.Column('fields_updated', sa.Integer(), nullable=False),
    sa.Column('current_item', sa.String(length=255), nullable=True),
    sa.Column('errors', sa.JSON(), nullable=False),
    sa.Column('details', sa.JSON(), nullable=False),
    sa.Column('cancel_requested', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('started_at', sa.DateTime(), nullable=True),
    sa.Column('completed_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('job_id')
    )
    op.create_index(op.f('ix_batch_jobs_status'), 'batch_jobs', ['status'], unique=False)
    op.create_index(op.f('ix_batch_jobs_created_at'), 'batch_jobs', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema: drop all pipeline tables."""
    op.drop_index(op.f('ix_batch_jobs_created_at'), table_name='batch_jobs')
    op.drop_index(op.f('ix_batch_jobs_status'), table_name='batch_jobs')
    op.drop_table('batch_jobs')
    op.drop_index(op.f('ix_committee_hearings_hearing_date'), table_name='committee_hearings')
    op.drop_index(op.f('ix_committee_hearings_complex_id'), table_name='committee_hearings')
    op.drop_table('committee_hearings')
    op.drop_index('idx_alerts_unread', table_name='alerts')
    op.drop_index('idx_alerts_complex_type_created', table_name='alerts')
    op.drop_index(op.f('ix_alerts_created_at'), table_name='alerts')
    op.drop_index(op.f('ix_alerts_is_read'), table_name='alerts')
    op.drop_index(op.f('ix_alerts_severity'), table_name='alerts')
    op.drop_index(op.f('ix_alerts_complex_id'), table_name='alerts')
    op.drop_table('alerts')
    op.drop_index(op.f('ix_listings_is_active'), table_name='listings')
    op.drop_index(op.f('ix_listings_stress_score'), table_name='listings')
    op.drop_index(op.f('ix_listings_complex_id'), table_name='listings')
    op.drop_table('listings')
    op.drop_index('idx_complexes_priority_desc', table_name='complexes')
    op.drop_index(op.f('ix_complexes_discovery_source'), table_name='complexes')
    op.drop_index(op.f('ix_complexes_attractiveness_score'), table_name='complexes')
    op.drop_index(op.f('ix_complexes_tier'), table_name='complexes')
    op.drop_index(op.f('ix_complexes_priority_score'), table_name='complexes')
    op.drop_index(op.f('ix_complexes_status'), table_name='complexes')
    op.drop_index(op.f('ix_complexes_city'), table_name='complexes')
    op.drop_table('complexes')
