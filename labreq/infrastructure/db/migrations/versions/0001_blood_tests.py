"""Blood test requisition documents"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_blood_tests"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "blood_tests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("form_data_json", sa.Text(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("status in ('draft','completed','archived')", name="ck_blood_tests_status"),
    )
    op.create_index("ix_blood_tests_user_id_created_at", "blood_tests", ["user_id", "created_at"], unique=False)
    op.create_index("ix_blood_tests_status", "blood_tests", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_blood_tests_status", table_name="blood_tests")
    op.drop_index("ix_blood_tests_user_id_created_at", table_name="blood_tests")
    op.drop_table("blood_tests")
