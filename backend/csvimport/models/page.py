from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from csvimport.core.database import Base


# Field kinds a template can declare. Grouped into import variants by
# csvimport.services.field_mapper.
SCALAR_KINDS = ("text", "textarea", "integer", "float", "date", "checkbox", "password", "options")
ATTACHMENT_KINDS = ("file",)
REFERENCE_KINDS = ("page",)
FIELD_KINDS = SCALAR_KINDS + ATTACHMENT_KINDS + REFERENCE_KINDS


class Template(Base):
    """Schema for a kind of page: which fields it carries and of what kind."""

    __tablename__ = "templates"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    label: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    fields: Mapped[list["TemplateField"]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        foreign_keys="TemplateField.template_id",
    )

    def get_field(self, name: str) -> "TemplateField | None":
        for field in self.fields:
            if field.name == name:
                return field
        return None


class TemplateField(Base):
    """A typed field on a template."""

    __tablename__ = "template_fields"
    __table_args__ = (UniqueConstraint("template_id", "name", name="unique_template_field"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    template_id: Mapped[int] = mapped_column(ForeignKey("templates.id"), index=True)

    name: Mapped[str] = mapped_column(String(100))
    label: Mapped[str | None] = mapped_column(String(255))
    kind: Mapped[str] = mapped_column(String(20))  # one of FIELD_KINDS

    # file/page/options: 0 = unlimited, 1 = single value
    max_count: Mapped[int] = mapped_column(Integer, default=0)
    # options: allowed values
    options: Mapped[list | None] = mapped_column(JSON)

    # page: where selectable pages live
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("pages.id"))
    target_template_id: Mapped[int | None] = mapped_column(ForeignKey("templates.id"))
    # page: where missing pages get created during import
    create_parent_id: Mapped[int | None] = mapped_column(ForeignKey("pages.id"))
    create_template_id: Mapped[int | None] = mapped_column(ForeignKey("templates.id"))

    template: Mapped["Template"] = relationship(back_populates="fields", foreign_keys=[template_id])

    @property
    def is_single(self) -> bool:
        return self.max_count == 1


class Page(Base):
    """A record in the page tree. Imported rows become pages."""

    __tablename__ = "pages"
    __table_args__ = (UniqueConstraint("parent_id", "name", name="unique_parent_page_name"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("pages.id"), index=True)
    template_id: Mapped[int] = mapped_column(ForeignKey("templates.id"), index=True)

    name: Mapped[str] = mapped_column(String(128), index=True)
    title: Mapped[str | None] = mapped_column(String(255), index=True)

    # Template field values keyed by field name
    data: Mapped[dict] = mapped_column(JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    template: Mapped["Template"] = relationship()
    files: Mapped[list["PageFile"]] = relationship(
        back_populates="page", cascade="all, delete-orphan", order_by="PageFile.sort"
    )


class PageFile(Base):
    """A file stored for a page's attachment field."""

    __tablename__ = "page_files"

    id: Mapped[int] = mapped_column(primary_key=True)
    page_id: Mapped[int] = mapped_column(ForeignKey("pages.id"), index=True)
    field_name: Mapped[str] = mapped_column(String(100), index=True)

    filename: Mapped[str] = mapped_column(String(255))
    source: Mapped[str] = mapped_column(String(2000))  # locator the file was imported from
    sort: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    page: Mapped["Page"] = relationship(back_populates="files")
