# tests/services/test_category_maintenance.py
from app.db.models import Category


def _corrupt(db_session, category_id, **values):
    db_session.query(Category).filter(Category.id == category_id).update(values)
    db_session.commit()


def test_rebuild_resets_roots_only_by_default(category_service, grains_tree, db_session):
    grains, rice, basmati = grains_tree
    _corrupt(db_session, grains.id, path=f"/{grains.id}", level=3)
    _corrupt(db_session, basmati.id, path="/wrong", level=9)

    updated = category_service.rebuild_hierarchy()

    assert updated == 1
    assert category_service.get_category(grains.id).path == "/grains"
    assert category_service.get_category(grains.id).level == 0
    # Descendants are left alone by the narrow rebuild
    assert category_service.get_category(basmati.id).path == "/wrong"


def test_full_rebuild_recomputes_every_node(category_service, grains_tree, db_session, check_tree):
    grains, rice, basmati = grains_tree
    _corrupt(db_session, rice.id, path="/rice", level=0)
    _corrupt(db_session, basmati.id, path="/wrong", level=9)
    _corrupt(db_session, grains.id, children_count=5)

    updated = category_service.rebuild_hierarchy(full=True, actor="ops")

    assert updated == 2
    check_tree()
    assert category_service.get_category(basmati.id).path == "/grains/rice/basmati"
    assert category_service.get_category(basmati.id).updated_by == "ops"
    assert category_service.get_category(grains.id).children_count == 1


def test_rebuild_on_consistent_tree_changes_nothing(category_service, grains_tree):
    assert category_service.rebuild_hierarchy(full=True) == 0


def test_reconcile_counters(category_service, grains_tree, make_product, db_session):
    grains, rice, basmati = grains_tree
    make_product(basmati.id)
    make_product(basmati.id)
    make_product(basmati.id, deleted=True)
    _corrupt(db_session, rice.id, children_count=4)

    corrected = category_service.reconcile_counters()

    # product_count was never written by the product inserts, so basmati drifts too
    assert corrected == 2
    assert category_service.get_category(rice.id).children_count == 1
    assert category_service.get_category(basmati.id).product_count == 2

    assert category_service.reconcile_counters() == 0


def test_reconcile_ignores_deleted_children(category_service, make_category, db_session, actor):
    grains = make_category("Grains")
    rice = make_category("Rice", parent_id=grains.id)
    category_service.delete_category(rice.id, actor=actor)
    _corrupt(db_session, grains.id, children_count=1)

    assert category_service.reconcile_counters() == 1
    assert category_service.get_category(grains.id).children_count == 0
