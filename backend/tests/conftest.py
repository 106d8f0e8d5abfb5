"""
Pytest configuration and fixtures for backend tests.
"""

import os

# The app engine is created at import time; keep it off Postgres
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from csvimport.core.config import get_settings
from csvimport.core.database import Base, get_db
from csvimport.main import app
from csvimport.models.page import Page, Template, TemplateField
from csvimport.services.import_config import DuplicatePolicy, ImportConfig, build_import_config

# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def storage_dirs(tmp_path: Path, monkeypatch) -> Path:
    """Keep uploads and attachment files inside the test's tmp dir."""
    settings = get_settings()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "FILES_DIR", str(tmp_path / "files"))
    monkeypatch.setattr(settings, "USE_BATCH_OFFSET_INDEX", False)
    return tmp_path


@pytest.fixture
def folder_template(db: Session) -> Template:
    template = Template(name="folder", label="Folder")
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


@pytest.fixture
def parent(db: Session, folder_template: Template) -> Page:
    """The page imported records are created under."""
    page = Page(name="products", title="Products", template_id=folder_template.id, data={})
    db.add(page)
    db.commit()
    db.refresh(page)
    return page


@pytest.fixture
def category_parent(db: Session, folder_template: Template) -> Page:
    page = Page(name="categories", title="Categories", template_id=folder_template.id, data={})
    db.add(page)
    db.commit()
    db.refresh(page)
    return page


@pytest.fixture
def category_template(db: Session) -> Template:
    template = Template(name="category", label="Category")
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


@pytest.fixture
def template(
    db: Session,
    category_template: Template,
    category_parent: Page,
) -> Template:
    """A product template covering every field kind."""
    template = Template(name="product", label="Product")
    template.fields = [
        TemplateField(name="sku", kind="text", max_count=0),
        TemplateField(name="description", kind="textarea", max_count=0),
        TemplateField(name="price", kind="float", max_count=0),
        TemplateField(name="quantity", kind="integer", max_count=0),
        TemplateField(name="released", kind="date", max_count=0),
        TemplateField(name="active", kind="checkbox", max_count=0),
        TemplateField(name="secret", kind="password", max_count=0),
        TemplateField(name="color", kind="options", max_count=1, options=["Red", "Green", "Blue"]),
        TemplateField(name="sizes", kind="options", max_count=0, options=["S", "M", "L"]),
        TemplateField(name="photos", kind="file", max_count=0),
        TemplateField(name="manual", kind="file", max_count=1),
        TemplateField(
            name="category",
            kind="page",
            max_count=1,
            parent_id=category_parent.id,
            target_template_id=category_template.id,
            create_parent_id=category_parent.id,
            create_template_id=category_template.id,
        ),
        TemplateField(
            name="related",
            kind="page",
            max_count=0,
            target_template_id=category_template.id,
        ),
    ]
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., str]:
    """Write CSV text to a file in the tmp dir and return its path."""
    def _write(content: str, filename: str = "import.csv", encoding: str = "utf-8") -> str:
        path = tmp_path / filename
        path.write_bytes(content.encode(encoding))
        return str(path)

    return _write


@pytest.fixture
def make_config(db: Session, template: Template, parent: Page) -> Callable[..., ImportConfig]:
    """Build a validated ImportConfig for the product template under ``parent``."""
    def _make(
        source_path: str,
        column_mapping: list[str],
        duplicate_policy: DuplicatePolicy = DuplicatePolicy.SKIP,
        **options,
    ) -> ImportConfig:
        return build_import_config(
            db,
            template_id=template.id,
            parent_id=parent.id,
            source_path=source_path,
            column_mapping=column_mapping,
            duplicate_policy=duplicate_policy,
            **options,
        )

    return _make


SAMPLE_CSV = "name,title\na,Alpha\nb,Beta\n"


@pytest.fixture
def sample_csv(write_csv) -> str:
    """Path of the two-row name/title sample file."""
    return write_csv(SAMPLE_CSV)
