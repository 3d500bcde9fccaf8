"""create tracks table

Revision ID: create_tracks_table
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.engine.reflection import Inspector


revision: str = "create_tracks_table"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# (name, columns, unique)
TRACK_INDEXES = [
    ("ix_tracks_path", ["path"], True),
    ("ix_tracks_modified_time", ["modified_time"], False),
    ("ix_tracks_extension", ["extension"], False),
    ("ix_tracks_album", ["album"], False),
    ("ix_tracks_album_artist", ["album_artist"], False),
    ("ix_tracks_genre", ["genre"], False),
    ("ix_tracks_year", ["year"], False),
    ("idx_track_artist_album", ["artist", "album"], False),
    ("idx_track_album_disc_track", ["album", "disc_number", "track_number"], False),
]


def upgrade() -> None:
    conn = op.get_bind()
    inspector = Inspector.from_engine(conn)

    if "tracks" not in inspector.get_table_names():
        op.create_table(
            "tracks",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("path", sa.String(), nullable=False),
            sa.Column("extension", sa.String(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("artist", sa.String(), nullable=False),
            sa.Column("album", sa.String(), nullable=False),
            sa.Column("album_artist", sa.String(), nullable=False),
            sa.Column("genre", sa.String(), nullable=False),
            sa.Column("publisher", sa.String(), nullable=False),
            sa.Column("catalog_number", sa.String(), nullable=False),
            sa.Column("disc_number", sa.Integer(), nullable=True),
            sa.Column("track_number", sa.Integer(), nullable=True),
            sa.Column("year", sa.Integer(), nullable=True),
            sa.Column("duration_seconds", sa.Integer(), nullable=False),
            sa.Column("audio_bitrate", sa.Integer(), nullable=False),
            sa.Column("overall_bitrate", sa.Integer(), nullable=False),
            sa.Column("sample_rate", sa.Integer(), nullable=False),
            sa.Column("bit_depth", sa.Integer(), nullable=False),
            sa.Column("channels", sa.Integer(), nullable=False),
            sa.Column("tags", sa.JSON(), nullable=False),
            sa.Column("size", sa.Integer(), nullable=True),
            sa.Column("modified_time", sa.Float(), nullable=False),
            sa.Column("created_time", sa.Float(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        # Fresh inspector: the reflection cache predates the new table
        inspector = Inspector.from_engine(conn)

    existing = {idx["name"] for idx in inspector.get_indexes("tracks")}
    for name, columns, unique in TRACK_INDEXES:
        if name not in existing:
            op.create_index(name, "tracks", columns, unique=unique)


def downgrade() -> None:
    conn = op.get_bind()
    inspector = Inspector.from_engine(conn)
    if "tracks" not in inspector.get_table_names():
        return
    existing = {idx["name"] for idx in inspector.get_indexes("tracks")}
    for name, _, _ in reversed(TRACK_INDEXES):
        if name in existing:
            op.drop_index(name, table_name="tracks")
    op.drop_table("tracks")
