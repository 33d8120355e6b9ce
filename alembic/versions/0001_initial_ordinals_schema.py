"""Initial ordinals schema (processed_blocks, inscriptions, locations, current_locations)

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "processed_blocks",
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("block_hash", sa.String(), nullable=False),
        sa.Column("parent_hash", sa.String(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("timestamp", sa.DateTime(), nullable=True),
        sa.Column("tx_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("inscriptions_revealed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("blessed_revealed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cursed_revealed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("transfers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("inscription_count_accum", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "state_hash",
            sa.String(),
            nullable=False,
            comment="Change fingerprint of the ledger after this block was applied",
        ),
        sa.PrimaryKeyConstraint("height"),
        sa.UniqueConstraint("block_hash"),
    )

    op.create_table(
        "inscriptions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("genesis_id", sa.String(), nullable=False),
        sa.Column("number", sa.BigInteger(), nullable=False),
        sa.Column("number_hint", sa.BigInteger(), nullable=True, comment="Number reported by the event source"),
        sa.Column("mime_type", sa.String(), nullable=False),
        sa.Column("content_type", sa.String(), nullable=False),
        sa.Column("content_length", sa.Integer(), nullable=False),
        sa.Column("content", sa.LargeBinary(), nullable=True),
        sa.Column("fee", sa.BigInteger(), nullable=False),
        sa.Column("genesis_block_height", sa.Integer(), nullable=False),
        sa.Column("genesis_block_hash", sa.String(), nullable=False),
        sa.Column("genesis_tx_id", sa.String(), nullable=False),
        sa.Column("genesis_tx_index", sa.Integer(), nullable=False),
        sa.Column("genesis_op_index", sa.Integer(), nullable=False),
        sa.Column("genesis_address", sa.String(), nullable=True),
        sa.Column("genesis_timestamp", sa.DateTime(), nullable=False),
        sa.Column("sat_ordinal", sa.BigInteger(), nullable=False),
        sa.Column("sat_rarity", sa.String(), nullable=False),
        sa.Column("sat_coinbase_height", sa.Integer(), nullable=False),
        sa.Column("curse_type", sa.String(), nullable=True, comment="NULL for blessed inscriptions"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("genesis_id"),
        sa.UniqueConstraint("number"),
    )
    op.create_index("ix_inscriptions_mime_type", "inscriptions", ["mime_type"])
    op.create_index("ix_inscriptions_genesis_block_height", "inscriptions", ["genesis_block_height"])
    op.create_index("ix_inscriptions_genesis_block_hash", "inscriptions", ["genesis_block_hash"])
    op.create_index("ix_inscriptions_genesis_address", "inscriptions", ["genesis_address"])
    op.create_index("ix_inscriptions_sat_ordinal", "inscriptions", ["sat_ordinal"])
    op.create_index("ix_inscriptions_sat_rarity", "inscriptions", ["sat_rarity"])
    op.create_index(
        "ix_inscriptions_genesis_position",
        "inscriptions",
        ["genesis_block_height", "genesis_tx_index", "genesis_op_index"],
    )

    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("inscription_id", sa.Integer(), nullable=False),
        sa.Column("genesis_id", sa.String(), nullable=False),
        sa.Column("block_height", sa.Integer(), nullable=False),
        sa.Column("block_hash", sa.String(), nullable=False),
        sa.Column("tx_id", sa.String(), nullable=False),
        sa.Column("tx_index", sa.Integer(), nullable=False, comment="Transaction position within the block"),
        sa.Column(
            "op_index",
            sa.Integer(),
            nullable=False,
            comment="Operation position within the transaction",
        ),
        sa.Column("output", sa.String(), nullable=False, comment="<tx_id>:<vout>"),
        sa.Column("offset", sa.BigInteger(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("value", sa.BigInteger(), nullable=True),
        sa.Column("genesis", sa.Boolean(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["inscription_id"], ["inscriptions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_locations_genesis_id", "locations", ["genesis_id"])
    op.create_index("ix_locations_block_height", "locations", ["block_height"])
    op.create_index("ix_locations_block_hash", "locations", ["block_hash"])
    op.create_index("ix_locations_output", "locations", ["output"])
    op.create_index("ix_locations_address", "locations", ["address"])
    op.create_index(
        "ix_locations_inscription_position",
        "locations",
        ["inscription_id", "block_height", "tx_index", "op_index"],
        unique=True,
    )

    op.create_table(
        "current_locations",
        sa.Column("inscription_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("block_height", sa.Integer(), nullable=False),
        sa.Column("address", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["inscription_id"], ["inscriptions.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("inscription_id"),
        sa.UniqueConstraint("location_id"),
    )
    op.create_index("ix_current_locations_address", "current_locations", ["address"])


def downgrade() -> None:
    op.drop_index("ix_current_locations_address", table_name="current_locations")
    op.drop_table("current_locations")

    for index in (
        "ix_locations_inscription_position",
        "ix_locations_address",
        "ix_locations_output",
        "ix_locations_block_hash",
        "ix_locations_block_height",
        "ix_locations_genesis_id",
    ):
        op.drop_index(index, table_name="locations")
    op.drop_table("locations")

    for index in (
        "ix_inscriptions_genesis_position",
        "ix_inscriptions_sat_rarity",
        "ix_inscriptions_sat_ordinal",
        "ix_inscriptions_genesis_address",
        "ix_inscriptions_genesis_block_hash",
        "ix_inscriptions_genesis_block_height",
        "ix_inscriptions_mime_type",
    ):
        op.drop_index(index, table_name="inscriptions")
    op.drop_table("inscriptions")

    op.drop_table("processed_blocks")
