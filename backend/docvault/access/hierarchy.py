"""
Parent-pointer integrity for the document forest.

Documents reference their parent by id only. Every walk here runs over a flat
``{id: Document}`` index built from the owner's complete document set and is
bounded by the size of that set, so a tree that is already corrupt makes the
walk fail instead of spinning.
"""

from __future__ import annotations

from typing import Iterable

from ..common.errors import Conflict, NotFound, ValidationFailed
from ..models import Document


def index_documents(documents: Iterable[Document]) -> dict[int, Document]:
    return {document.id: document for document in documents}


class HierarchyValidator:
    def validate_move(self, document: Document, proposed_parent_id: int | None, documents: Iterable[Document]) -> None:
        """
        Raise if attaching ``document`` under ``proposed_parent_id`` would break the forest.

        ``document`` may be unsaved (``id is None``) when validating a create-with-parent;
        it is then a leaf and only the parent checks apply.
        """

        if proposed_parent_id is None:
            return

        if document.id is not None and proposed_parent_id == document.id:
            raise Conflict("HIERARCHY_CYCLE", "A document cannot be its own parent.")

        by_id = index_documents(documents)
        parent = by_id.get(proposed_parent_id)
        if parent is None or not parent.is_active:
            raise NotFound("PARENT_NOT_FOUND", "Parent folder not found.")
        if not parent.is_folder:
            raise ValidationFailed("INVALID_PARENT", "Only folders can contain documents.")

        if document.id is None:
            return

        for ancestor_id in self._walk(parent.id, by_id):
            if ancestor_id == document.id:
                raise Conflict("HIERARCHY_CYCLE", "Cannot move a folder into one of its own descendants.")

    def ancestors(self, document: Document, documents: Iterable[Document]) -> list[Document]:
        """Ancestors of ``document`` ordered from the root down, excluding the document itself."""

        by_id = index_documents(documents)
        chain: list[Document] = []
        if document.parent_id is None:
            return chain
        for ancestor_id in self._walk(document.parent_id, by_id):
            ancestor = by_id.get(ancestor_id)
            if ancestor is None:
                break
            chain.append(ancestor)
        chain.reverse()
        return chain

    @staticmethod
    def _walk(start_id: int, by_id: dict[int, Document]) -> Iterable[int]:
        # Yields start_id and every ancestor id above it; stops at a root or at an id outside the set.
        bound = len(by_id) + 1
        visited: set[int] = set()
        current: int | None = start_id
        steps = 0
        while current is not None:
            if current in visited or steps > bound:
                raise Conflict("HIERARCHY_CORRUPT", "Document hierarchy contains a cycle.")
            visited.add(current)
            steps += 1
            yield current
            node = by_id.get(current)
            if node is None:
                return
            current = node.parent_id
