import logging

import pytest

from categories import (
    UNKNOWN_CATEGORY_ID,
    CategoryIndex,
    ChildCategory,
    RootCategory,
    category_from_row,
)
from records import TransactionType


def _index() -> CategoryIndex:
    return CategoryIndex(
        [
            RootCategory(1, "Donations", TransactionType.income),
            ChildCategory(2, "Individual", TransactionType.income, 1),
            ChildCategory(3, "Corporate", TransactionType.income, 1),
            ChildCategory(4, "Legacy", TransactionType.income, 1, is_active=False),
            RootCategory(5, "Rent", TransactionType.expense),
        ]
    )


def test_resolve_label_child_root_and_unknown():
    index = _index()
    assert index.resolve_label(2) == "Donations → Individual"
    assert index.resolve_label(5) == "Rent"
    assert index.resolve_label(999) == "Unknown"


def test_find_id_by_label_round_trips():
    index = _index()
    for category_id in (1, 2, 3, 5):
        assert index.find_id_by_label(index.resolve_label(category_id)) == category_id
    assert index.find_id_by_label("Individual") == UNKNOWN_CATEGORY_ID


def test_budgeted_ids_include_only_active_children():
    index = _index()
    assert index.budgeted_category_ids([1]) == {1, 2, 3}
    assert index.budgeted_category_ids([5, 2]) == {5, 2}
    assert index.children_of(1, active_only=False) == [2, 3, 4]


def test_category_from_row_builds_variants():
    assert isinstance(category_from_row(1, "A", "income"), RootCategory)
    child = category_from_row(2, "B", "expense", parent_id=1)
    assert isinstance(child, ChildCategory)
    assert child.category_type == TransactionType.expense


def test_third_level_is_rejected():
    with pytest.raises(ValueError):
        CategoryIndex(
            [
                RootCategory(1, "Programs", TransactionType.expense),
                ChildCategory(2, "Youth", TransactionType.expense, 1),
                ChildCategory(3, "Camp", TransactionType.expense, 2),
            ]
        )


def test_label_collision_keeps_first_and_is_reported(caplog):
    with caplog.at_level(logging.WARNING, logger="categories"):
        index = CategoryIndex(
            [
                RootCategory(1, "Programs", TransactionType.expense),
                ChildCategory(2, "Grants", TransactionType.expense, 1),
                RootCategory(3, "Programs → Grants", TransactionType.expense),
            ]
        )
    assert index.find_id_by_label("Programs → Grants") == 2
    assert index.collisions == {"Programs → Grants": [2, 3]}
    assert "category_label_collision" in caplog.text
