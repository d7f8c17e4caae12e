"""Initial schema - all dojo tables

Revision ID: 001_initial_schema
Revises: (none)
Create Date: 2026-10-19

Creates ALL tables from SQLAlchemy models using metadata.create_all().
This is the single migration for fresh deployment.
"""

from alembic import op

revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create all tables from SQLAlchemy models."""
    conn = op.get_bind()

    # Import all models so they register with Base.metadata
    from database.base import Base
    from database.models import (  # noqa: F401
        school, profile, belts, events, billing,
        notification, feed, classes,
    )

    Base.metadata.create_all(bind=conn, checkfirst=True)


def downgrade():
    """Drop all tables."""
    conn = op.get_bind()

    from database.base import Base
    from database.models import (  # noqa: F401
        school, profile, belts, events, billing,
        notification, feed, classes,
    )

    Base.metadata.drop_all(bind=conn)
