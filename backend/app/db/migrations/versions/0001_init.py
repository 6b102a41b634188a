"""init

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    ]

def upgrade():
    op.create_table(
        "organization",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("login", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=256), nullable=True),
        sa.Column("password_hash", sa.String(length=256), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_user_login", "user", ["login"], unique=True)
    op.create_index("ix_user_organization_id", "user", ["organization_id"])

    op.create_table(
        "data_import",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(length=512), nullable=False),
        sa.Column("original_filename", sa.String(length=512), nullable=False),
        sa.Column("table_name", sa.String(length=512), nullable=False, server_default=""),
        sa.Column("file_type", sa.String(length=16), nullable=False),
        sa.Column("storage_path", sa.String(length=1024), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("row_count", sa.Integer(), nullable=True),
        sa.Column("columns_metadata", sa.JSON(), nullable=False),
        sa.Column("column_analysis", sa.JSON(), nullable=False),
        sa.Column("column_suggestions", sa.Text(), nullable=True),
        sa.Column("data_quality", sa.JSON(), nullable=False),
        sa.Column("data_validation", sa.JSON(), nullable=False),
        sa.Column("analysis_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("analysis_finished_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("(status = 'error') = (error_message IS NOT NULL)", name="ck_data_import_error_message"),
        sa.CheckConstraint("status = 'pending' OR storage_path IS NOT NULL", name="ck_data_import_storage_path"),
    )
    op.create_index("ix_data_import_organization_id", "data_import", ["organization_id"])
    op.create_index("ix_data_import_status", "data_import", ["status"])

    op.create_table(
        "data_import_column",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("import_id", sa.Integer(), sa.ForeignKey("data_import.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=512), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("sample", sa.Text(), nullable=False, server_default=""),
        sa.Column("null_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unique_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_email", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_url", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_phone", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.UniqueConstraint("import_id", "position", name="uq_import_column_position"),
    )
    op.create_index("ix_data_import_column_import_id", "data_import_column", ["import_id"])

    op.create_table(
        "data_import_row",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("import_id", sa.Integer(), sa.ForeignKey("data_import.id", ondelete="CASCADE"), nullable=False),
        sa.Column("row_index", sa.Integer(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.UniqueConstraint("import_id", "row_index", name="uq_import_row_index"),
    )
    op.create_index("ix_data_import_row_import_id", "data_import_row", ["import_id"])

    op.create_table(
        "data_file_change",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("file_id", sa.Integer(), sa.ForeignKey("data_import.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("row_index", sa.Integer(), nullable=False),
        sa.Column("column_name", sa.String(length=512), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_data_file_change_file_id", "data_file_change", ["file_id"])
    op.create_index("ix_data_file_change_organization_id", "data_file_change", ["organization_id"])


def downgrade():
    op.drop_table("data_file_change")
    op.drop_table("data_import_row")
    op.drop_table("data_import_column")
    op.drop_table("data_import")
    op.drop_table("user")
    op.drop_table("organization")
