"""Two-level category taxonomy and the lookups reports need over it.

A category is either a root or a child of a root. Display labels render a
child as ``"{parent} → {name}"``; reports carry those labels and resolve them
back to ids, so the index keeps both directions.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Hashable, Iterable, Optional, Union

from records import TransactionType


logger = logging.getLogger(__name__)

LABEL_SEPARATOR = " → "
UNKNOWN_LABEL = "Unknown"
UNKNOWN_CATEGORY_ID = "unknown"


@dataclass(frozen=True)
class RootCategory:
    id: Hashable
    name: str
    category_type: TransactionType
    is_active: bool = True


@dataclass(frozen=True)
class ChildCategory:
    id: Hashable
    name: str
    category_type: TransactionType
    parent_id: Hashable
    is_active: bool = True


Category = Union[RootCategory, ChildCategory]


def category_from_row(
    id: Hashable,
    name: str,
    category_type: TransactionType,
    parent_id: Optional[Hashable] = None,
    is_active: bool = True,
) -> Category:
    if parent_id is None:
        return RootCategory(id, name, TransactionType(category_type), is_active)
    return ChildCategory(id, name, TransactionType(category_type), parent_id, is_active)


class CategoryIndex:
    def __init__(self, categories: Iterable[Category]) -> None:
        self._by_id: dict[Hashable, Category] = {}
        for category in categories:
            self._by_id[category.id] = category

        self._children: dict[Hashable, list[Hashable]] = defaultdict(list)
        for category in self._by_id.values():
            if isinstance(category, ChildCategory):
                parent = self._by_id.get(category.parent_id)
                if isinstance(parent, ChildCategory):
                    raise ValueError(
                        f"Category {category.id} is nested below another child category"
                    )
                self._children[category.parent_id].append(category.id)

        self._labels: dict[Hashable, str] = {}
        self._ids_by_label: dict[str, Hashable] = {}
        self.collisions: dict[str, list[Hashable]] = {}
        for category in self._by_id.values():
            label = self._render(category)
            self._labels[category.id] = label
            if label in self._ids_by_label:
                # First category wins the label; the rest are unreachable by label.
                self.collisions.setdefault(label, [self._ids_by_label[label]]).append(
                    category.id
                )
                continue
            self._ids_by_label[label] = category.id

        for label, ids in self.collisions.items():
            logger.warning(
                f"category_label_collision: label={label!r} ids={ids} resolved_to={ids[0]}"
            )

    def _render(self, category: Category) -> str:
        if isinstance(category, ChildCategory):
            parent = self._by_id.get(category.parent_id)
            if parent is not None:
                return f"{parent.name}{LABEL_SEPARATOR}{category.name}"
        return category.name

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    def get(self, category_id: Hashable) -> Optional[Category]:
        return self._by_id.get(category_id)

    def parent_of(self, category_id: Hashable) -> Optional[Category]:
        category = self._by_id.get(category_id)
        if isinstance(category, ChildCategory):
            return self._by_id.get(category.parent_id)
        return None

    def category_type(
        self, category_id: Hashable, default: TransactionType = TransactionType.expense
    ) -> TransactionType:
        category = self._by_id.get(category_id)
        return category.category_type if category else default

    def resolve_label(self, category_id: Hashable) -> str:
        return self._labels.get(category_id, UNKNOWN_LABEL)

    def find_id_by_label(self, label: str) -> Hashable:
        return self._ids_by_label.get(label, UNKNOWN_CATEGORY_ID)

    def children_of(
        self, category_id: Hashable, *, active_only: bool = True
    ) -> list[Hashable]:
        children = self._children.get(category_id, [])
        if not active_only:
            return list(children)
        return [cid for cid in children if self._by_id[cid].is_active]

    def budgeted_category_ids(self, category_ids: Iterable[Hashable]) -> set[Hashable]:
        """Budgeted ids plus the active children of each, for rollup."""
        budgeted: set[Hashable] = set()
        for category_id in category_ids:
            budgeted.add(category_id)
            budgeted.update(self.children_of(category_id))
        return budgeted
