"""
Initialize database tables.

Run this once after deployment to create all tables.
Usage: python -m scripts.init_db
"""

from csvimport.core.database import Base, engine
from csvimport.models import *  # noqa: F401, F403


def init_db():
    """Create the template, page, page file and import session tables."""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print(f"Created: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    init_db()
