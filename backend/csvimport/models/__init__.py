from csvimport.models.import_session import DuplicatePolicy, ImportSession
from csvimport.models.page import Page, PageFile, Template, TemplateField

__all__ = [
    "Template",
    "TemplateField",
    "Page",
    "PageFile",
    "ImportSession",
    "DuplicatePolicy",
]
