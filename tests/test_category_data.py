import pytest

from conftest import make_category, make_post
from weblog_data.schemas.common import PostStatus


@pytest.fixture(name="tree")
async def tree_fixture(data, web_log):
    # A -> B -> C, plus a second root D
    for category in (
        make_category("a", "Alpha"),
        make_category("b", "Beta", parent_id="a"),
        make_category("c", "Gamma", parent_id="b"),
        make_category("d", "Delta"),
    ):
        await data.category.add(category)


class TestCategoryData:
    async def test_counts(self, data, tree):
        assert await data.category.count_all("wl1") == 4
        assert await data.category.count_top_level("wl1") == 2
        assert await data.category.count_all("other") == 0

    async def test_find_by_web_log_sorted_by_name(self, data, tree):
        names = [category.name for category in await data.category.find_by_web_log("wl1")]
        assert names == ["Alpha", "Beta", "Delta", "Gamma"]

    async def test_find_by_id_other_web_log(self, data, tree):
        assert (await data.category.find_by_id("a", "wl1")).name == "Alpha"
        assert await data.category.find_by_id("a", "wl2") is None

    async def test_hierarchy_and_post_counts(self, data, tree):
        await data.post.add(make_post("p1", category_ids=["c"]))
        await data.post.add(make_post("p2", hours=1, category_ids=["b"]))
        # In both A and B; counted once for A
        await data.post.add(make_post("p3", hours=2, category_ids=["a", "b"]))
        await data.post.add(make_post("p4", hours=3, category_ids=["a"], status=PostStatus.draft))

        view = await data.category.find_all_for_view("wl1")
        assert [cat.id for cat in view] == ["a", "b", "c", "d"]
        by_id = {cat.id: cat for cat in view}
        assert by_id["c"].slug == "alpha/beta/gamma"
        assert by_id["c"].parent_names == ["Alpha", "Beta"]
        assert by_id["a"].post_count == 3
        assert by_id["b"].post_count == 3
        assert by_id["c"].post_count == 1
        assert by_id["d"].post_count == 0

    async def test_delete_moves_children_and_clears_posts(self, data, tree):
        await data.post.add(make_post("p1", category_ids=["b", "c"]))

        assert await data.category.delete("b", "wl1") is True

        assert (await data.category.find_by_id("c", "wl1")).parent_id == "a"
        assert (await data.post.find_by_id("p1", "wl1")).category_ids == ["c"]
        assert await data.category.find_by_id("b", "wl1") is None
        assert await data.category.count_all("wl1") == 3

    async def test_delete_other_web_log_is_a_no_op(self, data, tree):
        assert await data.category.delete("a", "wl2") is False
        assert await data.category.count_all("wl1") == 4

    async def test_update(self, data, tree):
        renamed = make_category("d", "Epsilon", parent_id="a")
        assert await data.category.update(renamed) is True
        assert await data.category.find_by_id("d", "wl1") == renamed
        assert await data.category.update(make_category("zz", "Missing")) is False

    async def test_restore(self, data, web_log):
        categories = [make_category(f"c{idx}", f"Category {idx}") for idx in range(5)]
        await data.category.restore(categories)
        assert await data.category.find_by_web_log("wl1") == categories
