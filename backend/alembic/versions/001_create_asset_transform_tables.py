"""Create asset transform tables

Revision ID: 001_asset_transforms
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_asset_transforms"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create asset_transforms and asset_transform_index."""

    # Named transform definitions, written by the config store listeners
    op.create_table(
        "asset_transforms",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("handle", sa.String(255), nullable=False),
        sa.Column(
            "mode", sa.String(32), nullable=False, server_default=sa.text("'crop'")
        ),
        sa.Column(
            "position",
            sa.String(32),
            nullable=False,
            server_default=sa.text("'center-center'"),
        ),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("format", sa.String(16), nullable=True),
        sa.Column("quality", sa.Integer(), nullable=True),
        sa.Column(
            "interlace", sa.String(16), nullable=False, server_default=sa.text("'none'")
        ),
        sa.Column("dimension_change_time", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("uid", sa.String(36), nullable=False),
        sa.Column(
            "date_created",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "date_updated",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "idx_asset_transforms_uid", "asset_transforms", ["uid"], unique=True
    )
    op.create_index(
        "idx_asset_transforms_handle",
        "asset_transforms",
        [sa.text("LOWER(handle)")],
    )

    # One row per rendition: (asset, location, format)
    op.create_table(
        "asset_transform_index",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("asset_id", sa.Integer(), nullable=False),
        sa.Column("volume_id", sa.Integer(), nullable=False),
        sa.Column("filename", sa.String(255), nullable=True),
        sa.Column("format", sa.String(16), nullable=True),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column(
            "file_exists", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "in_progress", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("error", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("date_indexed", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "date_created",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "date_updated",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "idx_asset_transform_index_lookup",
        "asset_transform_index",
        ["volume_id", "asset_id", "location"],
    )
    op.create_index(
        "idx_asset_transform_index_pending",
        "asset_transform_index",
        ["file_exists", "in_progress"],
    )


def downgrade():
    """Drop the asset transform tables."""
    op.drop_index("idx_asset_transform_index_pending", table_name="asset_transform_index")
    op.drop_index("idx_asset_transform_index_lookup", table_name="asset_transform_index")
    op.drop_table("asset_transform_index")

    op.drop_index("idx_asset_transforms_handle", table_name="asset_transforms")
    op.drop_index("idx_asset_transforms_uid", table_name="asset_transforms")
    op.drop_table("asset_transforms")
