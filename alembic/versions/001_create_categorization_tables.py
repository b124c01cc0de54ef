"""create categorization tables

Revision ID: 001
Revises: 
Create Date: 2026-10-17 09:00:00
"""

from alembic import op
import sqlalchemy as sa


revision = '001'
down_revision = None
branch_labels = None
depends_on = None

synonym_source = sa.Enum(
    'USER_CONFIRMED', 'AI_SUGGESTED', 'AUTO_LEARNED', 'IMPORTED', 'ADMIN_APPROVED',
    name='synonymsource'
)
search_mode = sa.Enum('BM25', 'AI', 'HYBRID', name='searchmode')


def upgrade() -> None:
    op.create_table(
        'user_synonyms',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=True),
        sa.Column('keyword', sa.String(255), nullable=False),
        sa.Column('category_id', sa.String(64), nullable=True),
        sa.Column('category_name', sa.String(255), nullable=False),
        sa.Column('sub_category_id', sa.String(64), nullable=True),
        sa.Column('sub_category_name', sa.String(255), nullable=True),
        sa.Column('confidence', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('source', synonym_source, nullable=False),
        sa.Column('last_used_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'keyword', name='uq_user_synonyms_user_keyword'),
    )
    op.create_index('ix_user_synonyms_user_id', 'user_synonyms', ['user_id'])
    op.create_index('ix_user_synonyms_keyword', 'user_synonyms', ['keyword'])
    op.create_index(
        'uq_user_synonyms_global_keyword',
        'user_synonyms',
        ['keyword'],
        unique=True,
        sqlite_where=sa.text('user_id IS NULL'),
        postgresql_where=sa.text('user_id IS NULL'),
    )

    op.create_table(
        'search_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('query', sa.Text(), nullable=False),
        sa.Column('query_normalized', sa.Text(), nullable=False),
        sa.Column('matches', sa.JSON(), nullable=False),
        sa.Column('best_match', sa.String(255), nullable=True),
        sa.Column('best_score', sa.Float(), nullable=True),
        sa.Column('threshold', sa.Float(), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('mode', search_mode, nullable=False),
        sa.Column('response_time_ms', sa.Integer(), nullable=False),
        sa.Column('flow_step', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_steps', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('ai_provider', sa.String(50), nullable=True),
        sa.Column('ai_model', sa.String(100), nullable=True),
        sa.Column('ai_confidence', sa.Float(), nullable=True),
        sa.Column('ai_category_id', sa.String(64), nullable=True),
        sa.Column('ai_category_name', sa.String(255), nullable=True),
        sa.Column('final_category_id', sa.String(64), nullable=True),
        sa.Column('final_category_name', sa.String(255), nullable=True),
        sa.Column('rag_initial_score', sa.Float(), nullable=True),
        sa.Column('rag_final_score', sa.Float(), nullable=True),
        sa.Column('was_ai_fallback', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_search_logs_created_at', 'search_logs', ['created_at'])
    op.create_index('ix_search_logs_user_success', 'search_logs', ['user_id', 'success'])

    # Shared cache for multi-instance deployments (cache_backend=database)
    op.create_table(
        'cache_entries',
        sa.Column('key', sa.String(255), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_cache_entries_expires_at', 'cache_entries', ['expires_at'])


def downgrade() -> None:
    op.drop_index('ix_cache_entries_expires_at', table_name='cache_entries')
    op.drop_table('cache_entries')
    op.drop_index('ix_search_logs_user_success', table_name='search_logs')
    op.drop_index('ix_search_logs_created_at', table_name='search_logs')
    op.drop_table('search_logs')
    op.drop_index('uq_user_synonyms_global_keyword', table_name='user_synonyms')
    op.drop_index('ix_user_synonyms_keyword', table_name='user_synonyms')
    op.drop_index('ix_user_synonyms_user_id', table_name='user_synonyms')
    op.drop_table('user_synonyms')
    synonym_source.drop(op.get_bind(), checkfirst=True)
    search_mode.drop(op.get_bind(), checkfirst=True)
