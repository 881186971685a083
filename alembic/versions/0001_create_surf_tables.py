"""create surf report tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_surf_tables"
down_revision = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None

_MEASUREMENTS = (
    "wave_height",
    "wave_period",
    "swell_direction",
    "wind_speed",
    "wind_direction",
    "water_temp",
)


def _keyed_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("location", sa.String(length=64), nullable=False),
    ]


def _indexes(table: str) -> None:
    op.create_index(op.f(f"ix_{table}_date"), table, ["date"], unique=False)
    op.create_index(op.f(f"ix_{table}_location"), table, ["location"], unique=False)


def upgrade() -> None:
    op.create_table(
        "surf_conditions",
        *_keyed_columns(),
        *(sa.Column(name, sa.String(length=32), nullable=False) for name in _MEASUREMENTS),
        sa.Column("surf_height", sa.String(length=32), nullable=False),
        sa.Column("buoy_id", sa.String(length=16), nullable=True),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("date", "location", name="uq_surf_conditions_date_location"),
    )
    _indexes("surf_conditions")

    op.create_table(
        "weather_data",
        *_keyed_columns(),
        sa.Column("conditions", sa.String(length=256), nullable=True),
        sa.Column("temperature", sa.String(length=16), nullable=True),
        sa.Column("forecast", sa.String(), nullable=True),
        sa.Column("wind_speed", sa.String(length=32), nullable=True),
        sa.Column("wind_direction", sa.String(length=16), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("date", "location", name="uq_weather_data_date_location"),
    )
    _indexes("weather_data")

    op.create_table(
        "tide_data",
        *_keyed_columns(),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("type", sa.String(length=8), nullable=False),
        sa.Column("height", sa.Float(), nullable=False),
        sa.Column("height_unit", sa.String(length=8), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _indexes("tide_data")

    op.create_table(
        "surf_reports",
        *_keyed_columns(),
        *(sa.Column(name, sa.String(length=32), nullable=False) for name in _MEASUREMENTS),
        sa.Column("surf_height", sa.String(length=32), nullable=False, server_default="N/A"),
        sa.Column("tide", sa.Text(), nullable=False),
        sa.Column("conditions", sa.Text(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("degraded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("date", "location", name="uq_surf_reports_date_location"),
    )
    _indexes("surf_reports")
    op.create_index(op.f("ix_surf_reports_generated_at"), "surf_reports", ["generated_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_surf_reports_generated_at"), table_name="surf_reports")
    for table in ("surf_reports", "tide_data", "weather_data", "surf_conditions"):
        op.drop_index(op.f(f"ix_{table}_location"), table_name=table)
        op.drop_index(op.f(f"ix_{table}_date"), table_name=table)
        op.drop_table(table)
