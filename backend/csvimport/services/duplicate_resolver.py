"""
Duplicate page name resolution.

A candidate page's name is looked up among the direct children of the
import's parent. What happens on a match depends on the import's
duplicate policy.
"""

from dataclasses import dataclass
from enum import Enum

from csvimport.models.page import Page
from csvimport.services.import_config import DuplicatePolicy
from csvimport.services.page_names import first_free_name
from csvimport.services.record_store import RecordStore


class ResolutionAction(str, Enum):
    CREATE = "create"
    SKIP = "skip"
    MODIFY = "modify"
    FAIL = "fail"


@dataclass
class Resolution:
    """Outcome of checking a candidate name against existing pages."""

    action: ResolutionAction
    name: str
    existing: Page | None = None
    renamed: bool = False  # name got a numeric suffix to be unique
    reason: str | None = None


class DuplicateResolver:
    """Decide whether a row creates, modifies or skips a page."""

    def __init__(self, store: RecordStore):
        self.store = store

    def resolve(
        self,
        candidate_name: str,
        parent_id: int | None,
        policy: DuplicatePolicy,
        template_id: int,
    ) -> Resolution:
        """
        Resolve a candidate name under ``parent_id``.

        Matching is exact and case-sensitive, limited to direct children.

        - No match: CREATE
        - Match, SKIP policy: SKIP
        - Match, CREATE_UNIQUE policy: CREATE as ``name-N`` with the
          smallest free N
        - Match, MODIFY policy: MODIFY the existing page, or FAIL if it uses
          another template
        """
        existing = self.store.find_child_by_name(parent_id, candidate_name)
        if existing is None:
            return Resolution(ResolutionAction.CREATE, candidate_name)

        if policy == DuplicatePolicy.SKIP:
            return Resolution(ResolutionAction.SKIP, candidate_name, existing=existing)

        if policy == DuplicatePolicy.CREATE_UNIQUE:
            taken = self.store.child_names_with_prefix(parent_id, f"{candidate_name}-")
            return Resolution(
                ResolutionAction.CREATE,
                first_free_name(candidate_name, taken),
                renamed=True,
            )

        if existing.template_id != template_id:
            return Resolution(
                ResolutionAction.FAIL,
                candidate_name,
                existing=existing,
                reason=(
                    f"Page '{candidate_name}' uses template {existing.template_id}, "
                    f"not {template_id}"
                ),
            )

        return Resolution(ResolutionAction.MODIFY, candidate_name, existing=existing)
