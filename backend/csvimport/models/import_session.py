from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from csvimport.core.database import Base


class DuplicatePolicy(str, Enum):
    """What to do when a row's page name already exists under the parent."""

    SKIP = "skip"
    CREATE_UNIQUE = "create_unique"
    MODIFY = "modify"


class ImportSession(Base):
    """Persisted import configuration, read by every batch request."""

    __tablename__ = "import_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)  # uuid4
    config: Mapped[dict] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
