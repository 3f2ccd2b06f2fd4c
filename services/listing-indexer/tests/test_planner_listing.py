from listing_indexer.listing import diff_listing
from listing_indexer.planner import description_to_listing_map
from listing_indexer.rules import Description


def test_listing_map_is_cross_product():
    description = Description(
        id="t1",
        includes=["/t/all", "/user/a/overview"],
        sorts=[("new", 10.0), ("top", 2.0)],
    )
    assert description_to_listing_map(description) == [
        ("/t/all/new", [("t1", 10.0)]),
        ("/t/all/top", [("t1", 2.0)]),
        ("/user/a/overview/new", [("t1", 10.0)]),
        ("/user/a/overview/top", [("t1", 2.0)]),
    ]


def test_listing_map_never_repeats_a_key():
    description = Description(id="t1", includes=["/t/all", "/t/all"], sorts=[("new", 1.0)])
    assert description_to_listing_map(description) == [("/t/all/new", [("t1", 1.0)])]


def test_listing_map_of_nothing():
    assert description_to_listing_map(None) == []
    assert description_to_listing_map(Description(id="t1", includes=["/t/all"])) == []


def test_diff_against_missing_node():
    assert diff_listing(None, [("t1", 3.0)]) == {"t1": 3.0}


def test_diff_unchanged_entry_is_noop():
    assert diff_listing({"t1": 3.0, "t2": 1.0}, [("t1", 3.0)]) is None
    assert diff_listing({"t1": 3}, [("t1", 3.0)]) is None


def test_diff_changed_entry():
    assert diff_listing({"t1": 3.0, "t2": 1.0}, [("t1", 4.0)]) == {"t1": 4.0}


def test_diff_removals():
    existing = {"t1": 3.0, "t2": 1.0}
    assert diff_listing(existing, [], removed_ids=["t2", "t9"]) == {"t2": None}
