import logging

from conftest import make_category
from weblog_data.data.hierarchy import order_by_hierarchy, subtree_ids, with_post_counts


def forest():
    return [
        make_category("c", "Cooking"),
        make_category("a", "art"),
        make_category("p", "Painting", parent_id="a"),
        make_category("o", "Oils", parent_id="p"),
        make_category("s", "Sculpture", parent_id="a"),
    ]


class TestOrderByHierarchy:
    def test_pre_order_sorted_by_name(self):
        ordered = order_by_hierarchy(forest())
        assert [cat.id for cat in ordered] == ["a", "p", "o", "s", "c"]

    def test_slugs_and_parent_names(self):
        by_id = {cat.id: cat for cat in order_by_hierarchy(forest())}
        assert by_id["a"].slug == "art"
        assert by_id["o"].slug == "art/painting/oils"
        assert by_id["o"].parent_names == ["art", "Painting"]
        assert by_id["o"].depth == 2
        assert all(cat.post_count == 0 for cat in by_id.values())

    def test_empty(self):
        assert order_by_hierarchy([]) == []

    def test_cycles_are_left_out_with_a_warning(self, caplog):
        categories = [
            make_category("a", "A"),
            make_category("x", "X", parent_id="y"),
            make_category("y", "Y", parent_id="x"),
        ]
        with caplog.at_level(logging.WARNING, logger="weblog_data.data.hierarchy"):
            ordered = order_by_hierarchy(categories)
        assert [cat.id for cat in ordered] == ["a"]
        assert "x, y" in caplog.text


class TestPostCounts:
    def test_subtree_ids(self):
        ordered = order_by_hierarchy(forest())
        by_id = {cat.id: cat for cat in ordered}
        assert subtree_ids(ordered, by_id["a"]) == ["a", "p", "o", "s"]
        assert subtree_ids(ordered, by_id["o"]) == ["o"]

    async def test_counts_cover_descendants(self):
        posts = {"a": ["post1"], "o": ["post1", "post2"], "c": ["post3"]}

        async def count_posts(cat_ids):
            return len({post for cat_id in cat_ids for post in posts.get(cat_id, [])})

        counted = await with_post_counts(order_by_hierarchy(forest()), count_posts)
        assert {cat.id: cat.post_count for cat in counted} == {"a": 2, "p": 2, "o": 2, "s": 0, "c": 1}
