# tests/services/test_category_move.py
import pytest

from app.core.exceptions import (
    CategoryNotFoundError,
    DepthExceededError,
    DuplicateNameError,
    InvalidMoveError,
)
from app.events import CategoryEventType


def test_move_grandchild_under_root(category_service, grains_tree, publisher, check_tree, actor):
    """Grains/Rice/Basmati -> Grains/Basmati"""
    grains, rice, basmati = grains_tree

    moved = category_service.move_category(basmati.id, grains.id, actor=actor)

    assert moved.parent_id == grains.id
    assert moved.level == 1
    assert moved.path == "/grains/basmati"
    assert category_service.get_category(grains.id).children_count == 2
    assert category_service.get_category(rice.id).children_count == 0
    check_tree()

    event = publisher.published[-1]
    assert event.event_type == CategoryEventType.MOVED
    payload = event.to_payload()
    assert payload["oldParentId"] == rice.id
    assert payload["newParentId"] == grains.id
    assert payload["level"] == 1


def test_move_ancestor_under_former_descendant(category_service, grains_tree, check_tree, actor):
    grains, rice, basmati = grains_tree

    # While Basmati is still below Grains the move must fail
    with pytest.raises(InvalidMoveError):
        category_service.move_category(grains.id, basmati.id, actor=actor)
    check_tree()

    # Once Basmati is lifted out to root it is no longer a descendant
    category_service.move_category(basmati.id, None, actor=actor)
    moved = category_service.move_category(grains.id, basmati.id, actor=actor)

    assert moved.path == "/basmati/grains"
    assert category_service.get_category(rice.id).path == "/basmati/grains/rice"
    assert category_service.get_category(rice.id).level == 2
    check_tree()


def test_move_under_descendant_leaves_tree_unchanged(category_service, grains_tree, check_tree, actor):
    grains, rice, basmati = grains_tree
    before = {node_id: (n.path, n.level, n.parent_id) for node_id, n in check_tree().items()}

    with pytest.raises(InvalidMoveError):
        category_service.move_category(grains.id, rice.id, actor=actor)

    after = {node_id: (n.path, n.level, n.parent_id) for node_id, n in check_tree().items()}
    assert after == before


def test_move_to_self(category_service, make_category, actor):
    rice = make_category("Rice")
    with pytest.raises(InvalidMoveError):
        category_service.move_category(rice.id, rice.id, actor=actor)


def test_move_subtree_to_root(category_service, grains_tree, check_tree, actor):
    grains, rice, basmati = grains_tree

    moved = category_service.move_category(rice.id, None, actor=actor)

    assert moved.parent_id is None
    assert moved.level == 0
    assert moved.path == "/rice"
    assert category_service.get_category(basmati.id).path == "/rice/basmati"
    assert category_service.get_category(basmati.id).level == 1
    assert category_service.get_category(grains.id).children_count == 0
    assert [c.id for c in category_service.get_root_categories()] == [grains.id, rice.id]
    check_tree()


def test_move_to_missing_parent(category_service, make_category, actor):
    rice = make_category("Rice")
    with pytest.raises(CategoryNotFoundError):
        category_service.move_category(rice.id, 404, actor=actor)


def test_move_missing_category(category_service, make_category, actor):
    grains = make_category("Grains")
    with pytest.raises(CategoryNotFoundError):
        category_service.move_category(404, grains.id, actor=actor)


def test_move_under_parent_at_max_level(category_service, make_category, actor):
    parent = make_category("L0")
    for level in range(1, 5):
        parent = make_category(f"L{level}", parent_id=parent.id)
    loose = make_category("Loose")

    with pytest.raises(DepthExceededError):
        category_service.move_category(loose.id, parent.id, actor=actor)


def test_move_subtree_that_would_overflow_depth(category_service, make_category, grains_tree, actor):
    grains, rice, basmati = grains_tree
    a = make_category("A")
    b = make_category("B", parent_id=a.id)
    c = make_category("C", parent_id=b.id)

    # Grains subtree is three levels tall; under C (level 2) its leaf would land at level 5
    with pytest.raises(DepthExceededError):
        category_service.move_category(grains.id, c.id, actor=actor)

    # Under B the leaf lands at level 4, which is allowed
    moved = category_service.move_category(grains.id, b.id, actor=actor)
    assert moved.level == 2
    assert category_service.get_category(basmati.id).level == 4


def test_move_duplicate_name_at_destination(category_service, make_category, actor):
    grains = make_category("Grains")
    make_category("Organic", parent_id=grains.id)
    organic_root = make_category("Organic")

    with pytest.raises(DuplicateNameError):
        category_service.move_category(organic_root.id, grains.id, actor=actor)


def test_move_regenerates_colliding_slug(category_service, make_category, check_tree, actor):
    pantry = make_category("Pantry")
    make_category("Rice Beans", parent_id=pantry.id)
    mixed = make_category("Rice & Beans")
    child = make_category("Canned", parent_id=mixed.id)

    moved = category_service.move_category(mixed.id, pantry.id, actor=actor)

    assert moved.slug == "rice-beans-1"
    assert moved.path == "/pantry/rice-beans-1"
    assert category_service.get_category(child.id).path == "/pantry/rice-beans-1/canned"
    check_tree()


def test_move_records_actor_on_descendants(category_service, grains_tree, db_session):
    grains, rice, basmati = grains_tree

    category_service.move_category(rice.id, None, actor="carol")

    assert category_service.get_category(rice.id).updated_by == "carol"
    assert category_service.get_category(basmati.id).updated_by == "carol"
