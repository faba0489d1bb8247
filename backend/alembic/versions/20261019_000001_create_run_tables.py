# File: backend/alembic/versions/20261019_000001_create_run_tables.py
# Version: v0.1.0
"""
Create tables: primer_runs, assembly_runs
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "primer_runs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("sequence_digest", sa.String(), nullable=False),
        sa.Column("target_start", sa.Integer(), nullable=False),
        sa.Column("target_end", sa.Integer(), nullable=False),
        sa.Column("parameters_json", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="completed"),
        sa.Column("result_json", sa.JSON(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
    )
    op.create_index("ix_primer_runs_sequence_digest", "primer_runs", ["sequence_digest"])
    op.create_table(
        "assembly_runs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("sequence_digest", sa.String(), nullable=False),
        sa.Column("sequence_length", sa.Integer(), nullable=False),
        sa.Column("fragment_count", sa.Integer(), nullable=False),
        sa.Column("enzyme", sa.String(), nullable=False),
        sa.Column("algorithm", sa.String(), nullable=False),
        sa.Column("fidelity", sa.Float(), nullable=True),
        sa.Column("partial", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("parameters_json", sa.JSON(), nullable=False),
        sa.Column("result_json", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="completed"),
    )
    op.create_index("ix_assembly_runs_sequence_digest", "assembly_runs", ["sequence_digest"])


def downgrade():
    op.drop_index("ix_assembly_runs_sequence_digest", table_name="assembly_runs")
    op.drop_table("assembly_runs")
    op.drop_index("ix_primer_runs_sequence_digest", table_name="primer_runs")
    op.drop_table("primer_runs")
