"""
Resolve reference locators to page ids.

A locator matches, in order, a numeric page id, an exact page name, then a
page title, within the parent and template the field allows. Locators that
match nothing are dropped, or created as minimal pages when the import
allows it and the field says where new pages go.
"""

from csvimport.core.logging import get_logger
from csvimport.models.page import Page, TemplateField
from csvimport.services.field_mapper import ReferenceRequest
from csvimport.services.page_names import sanitize_page_name
from csvimport.services.record_store import RecordStore

logger = get_logger(__name__)


class ReferenceResolver:
    """Turn ReferenceRequests into the value stored on a page field."""

    def __init__(self, store: RecordStore, create_missing: bool = False):
        self.store = store
        self.create_missing = create_missing
        self.created: list[Page] = []
        # Created for the row in progress; kept only once the row commits
        self._pending: list[tuple[Page, str]] = []

    def resolve(self, request: ReferenceRequest) -> int | list[int] | None:
        """
        Resolve all locators of a request.

        Returns:
            A page id (or None) for single reference fields, a list of
            page ids otherwise
        """
        template_field = request.field
        page_ids: list[int] = []

        for locator in request.locators:
            page = self.find(template_field, locator)
            if page is None and self.create_missing:
                page = self.create(template_field, locator)
            if page is None:
                logger.debug(f"Reference '{locator}' for field '{template_field.name}' not found")
                continue
            if page.id not in page_ids:
                page_ids.append(page.id)

        if template_field.is_single:
            return page_ids[0] if page_ids else None
        return page_ids

    def find(self, template_field: TemplateField, locator: str) -> Page | None:
        """Match a locator by id, name, then title within the field's scope."""
        scope = {
            "parent_id": template_field.parent_id,
            "template_id": template_field.target_template_id,
        }

        if locator.isdigit():
            page = self.store.find_page(page_id=int(locator), **scope)
            if page is not None:
                return page

        page = self.store.find_page(name=locator, **scope)
        if page is not None:
            return page

        return self.store.find_page(title=locator, **scope)

    def create(self, template_field: TemplateField, locator: str) -> Page | None:
        """Create a minimal page for an unmatched locator, if the field allows it."""
        parent_id = template_field.create_parent_id
        template_id = template_field.create_template_id
        if not parent_id or not template_id:
            return None

        # Created earlier in this batch outside the field's selectable scope
        existing = self.store.find_page(title=locator, parent_id=parent_id, template_id=template_id)
        if existing is not None:
            return existing

        name = sanitize_page_name(locator)
        if not name:
            return None

        page = self.store.create(
            Page(
                parent_id=parent_id,
                template_id=template_id,
                name=self.store.unique_name(parent_id, name),
                title=locator,
                data={},
            )
        )
        self._pending.append((page, template_field.name))
        return page

    def commit(self) -> None:
        """Keep the pages created for the row that was just committed."""
        for page, field_name in self._pending:
            self.created.append(page)
            logger.info(
                f"Created referenced page '{page.name}'",
                extra={"extra_fields": {"page_id": page.id, "field": field_name}},
            )
        self._pending = []

    def rollback(self) -> None:
        """Forget pages created for a row that was rolled back."""
        self._pending = []
