"""
Record store used by the importer.

A thin layer over the SQLAlchemy session offering the primitives the
import engine needs: lookups scoped to a parent, create, update and the
unique-name generator.
"""

from sqlalchemy.orm import Session

from csvimport.models.page import Page, PageFile, Template
from csvimport.services.page_names import first_free_name


class RecordStore:
    """Create, update and look up pages."""

    def __init__(self, db: Session):
        self.db = db

    def get_template(self, template_id: int) -> Template | None:
        return self.db.get(Template, template_id)

    def find_child_by_name(self, parent_id: int | None, name: str) -> Page | None:
        """Find a direct child of ``parent_id`` with exactly this name."""
        return self._children(parent_id).filter(Page.name == name).first()

    def child_names_with_prefix(self, parent_id: int | None, prefix: str) -> list[str]:
        """Names of direct children of ``parent_id`` starting with ``prefix``."""
        rows = (
            self._children(parent_id)
            .with_entities(Page.name)
            .filter(Page.name.startswith(prefix, autoescape=True))
            .all()
        )
        return [row[0] for row in rows]

    def unique_name(self, parent_id: int | None, name: str) -> str:
        """Return ``name`` or the first free ``name-N`` under ``parent_id``."""
        if self.find_child_by_name(parent_id, name) is None:
            return name
        return first_free_name(name, self.child_names_with_prefix(parent_id, f"{name}-"))

    def find_page(
        self,
        *,
        page_id: int | None = None,
        name: str | None = None,
        title: str | None = None,
        parent_id: int | None = None,
        template_id: int | None = None,
    ) -> Page | None:
        """Find one page by id, name or title, optionally scoped by parent/template."""
        q = self.db.query(Page)

        if page_id is not None:
            q = q.filter(Page.id == page_id)
        if name is not None:
            q = q.filter(Page.name == name)
        if title is not None:
            q = q.filter(Page.title == title)
        if parent_id is not None:
            q = q.filter(Page.parent_id == parent_id)
        if template_id is not None:
            q = q.filter(Page.template_id == template_id)

        return q.order_by(Page.id).first()

    def create(self, page: Page) -> Page:
        """Persist a new page and assign its id."""
        self.db.add(page)
        self.db.flush()
        return page

    def update(self, page: Page) -> Page:
        """Write pending changes of an existing page."""
        self.db.flush()
        return page

    def add_file(self, page: Page, field_name: str, filename: str, source: str) -> PageFile:
        """Attach a stored file to a page's attachment field."""
        sort = sum(1 for f in page.files if f.field_name == field_name)
        page_file = PageFile(
            page_id=page.id,
            field_name=field_name,
            filename=filename,
            source=source,
            sort=sort,
        )
        page.files.append(page_file)
        self.db.flush()
        return page_file

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def _children(self, parent_id: int | None):
        q = self.db.query(Page)
        if parent_id is None:
            return q.filter(Page.parent_id.is_(None))
        return q.filter(Page.parent_id == parent_id)
