"""create scans and scan_results tables

Revision ID: r1_scans_migration
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = 'r1_scans_migration'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ── scans ──
    op.create_table(
        'scans',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('target_domain', sa.String(2048), nullable=False),
        sa.Column('scan_type', sa.String(30), nullable=False),
        sa.Column('scan_depth', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('findings', sa.JSON(), nullable=True),
    )
    op.create_index('ix_scans_status', 'scans', ['status'])
    op.create_index('ix_scans_started_at', 'scans', ['started_at'])

    # ── scan_results (one row per finding, removed with its scan) ──
    op.create_table(
        'scan_results',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('scan_id', sa.Integer(), sa.ForeignKey('scans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('result_type', sa.String(20), nullable=False),
        sa.Column('severity', sa.String(10), nullable=True),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_scan_results_scan_id', 'scan_results', ['scan_id'])
    op.create_index('ix_scan_results_timestamp', 'scan_results', ['timestamp'])


def downgrade():
    op.drop_index('ix_scan_results_timestamp', table_name='scan_results')
    op.drop_index('ix_scan_results_scan_id', table_name='scan_results')
    op.drop_table('scan_results')

    op.drop_index('ix_scans_started_at', table_name='scans')
    op.drop_index('ix_scans_status', table_name='scans')
    op.drop_table('scans')
