import pytest
from datetime import timedelta

from conftest import at, make_post, recorded_writes
from weblog_data.core.errors import ConstraintViolationError
from weblog_data.schemas.common import MetaItem, PostStatus, Revision
from weblog_data.schemas.post import Chapter, Episode


@pytest.fixture(name="five_posts")
async def five_posts_fixture(data, web_log):
    # po0 is the oldest, po4 the newest
    for idx in range(5):
        await data.post.add(make_post(f"po{idx}", hours=idx, tags=["python"] if idx % 2 else ["misc"]))


class TestPostData:
    async def test_add_and_find(self, data, web_log):
        post = make_post(
            tags=["b", "a"],
            category_ids=["c1"],
            prior_permalinks=["2023/old.html"],
            metadata=[MetaItem(name="k", value="v")],
            episode=Episode(
                media="episode.mp3",
                length=1024,
                chapters=[Chapter(start_time=timedelta(0), title="Start")],
            ),
        )
        await data.post.add(post)

        found = await data.post.find_by_id("po1", "wl1")
        assert found.tags == ["a", "b"]
        assert found.category_ids == ["c1"]
        assert found.episode == post.episode
        assert found.revisions == []
        assert found.prior_permalinks == []

        assert await data.post.find_full_by_id("po1", "wl1") == post
        assert (await data.post.find_by_permalink("po1.html", "wl1")).id == "po1"

    async def test_other_web_log_sees_nothing(self, data, web_log):
        await data.post.add(make_post())
        assert await data.post.find_by_id("po1", "wl2") is None
        assert await data.post.find_by_permalink("po1.html", "wl2") is None
        assert await data.post.delete("po1", "wl2") is False
        assert await data.post.find_by_id("po1", "wl1") is not None

    async def test_count_by_status(self, data, web_log):
        await data.post.add(make_post("po1"))
        await data.post.add(make_post("po2", status=PostStatus.draft, published_on=None))
        assert await data.post.count_by_status(PostStatus.published, "wl1") == 1
        assert await data.post.count_by_status(PostStatus.draft, "wl1") == 1

    async def test_pagination(self, data, five_posts):
        first = await data.post.find_page_of_published_posts("wl1", 1, 2)
        second = await data.post.find_page_of_published_posts("wl1", 2, 2)
        third = await data.post.find_page_of_published_posts("wl1", 3, 2)

        # One extra post signals that another page follows
        assert [post.id for post in first] == ["po4", "po3", "po2"]
        assert [post.id for post in second] == ["po2", "po1", "po0"]
        assert [post.id for post in third] == ["po0"]

    async def test_pagination_with_equal_publish_times(self, data, web_log):
        for post_id in ("pc", "pa", "pd", "pb"):
            await data.post.add(make_post(post_id, tags=["same"], category_ids=["c1"]))

        pages = [await data.post.find_page_of_published_posts("wl1", nbr, 1) for nbr in (1, 2, 3, 4)]
        assert [[post.id for post in page] for page in pages] == [["pa", "pb"], ["pb", "pc"], ["pc", "pd"], ["pd"]]
        tagged = await data.post.find_page_of_tagged_posts("wl1", "same", 2, 2)
        assert [post.id for post in tagged] == ["pc", "pd"]
        categorized = await data.post.find_page_of_categorized_posts("wl1", ["c1"], 1, 3)
        assert [post.id for post in categorized] == ["pa", "pb", "pc", "pd"]

    async def test_tagged_and_categorized(self, data, web_log):
        await data.post.add(make_post("po1", tags=["python"], category_ids=["c1"]))
        await data.post.add(make_post("po2", hours=1, tags=["rust"], category_ids=["c2"]))
        await data.post.add(make_post("po3", hours=2, tags=["python"], status=PostStatus.draft))

        tagged = await data.post.find_page_of_tagged_posts("wl1", "python", 1, 10)
        assert [post.id for post in tagged] == ["po1"]
        categorized = await data.post.find_page_of_categorized_posts("wl1", ["c1", "c2"], 1, 10)
        assert [post.id for post in categorized] == ["po2", "po1"]

    async def test_admin_list_puts_drafts_first(self, data, five_posts):
        await data.post.add(make_post("draft", status=PostStatus.draft, published_on=None, updated_on=at(10)))
        posts = await data.post.find_page_of_posts("wl1", 1, 3)
        assert [post.id for post in posts] == ["draft", "po4", "po3", "po2"]
        assert all(post.text == "" for post in posts)

    async def test_surrounding_posts(self, data, five_posts):
        older, newer = await data.post.find_surrounding_posts("wl1", at(2))
        assert older.id == "po1"
        assert newer.id == "po3"

        older, newer = await data.post.find_surrounding_posts("wl1", at(0))
        assert older is None
        assert newer.id == "po1"

    async def test_update_children(self, data, web_log):
        await data.post.add(make_post(tags=["a", "b"], category_ids=["c1"]))
        updated = make_post(
            title="Updated",
            tags=["b", "c"],
            category_ids=["c2"],
            metadata=[MetaItem(name="m", value="1")],
            revisions=[Revision(as_of=at(1), text="Markdown: *new*")],
        )
        assert await data.post.update(updated) is True
        assert await data.post.find_full_by_id("po1", "wl1") == updated
        assert await data.post.update(make_post("missing")) is False

    async def test_unchanged_update_writes_nothing(self, data, web_log):
        if not hasattr(data, "engine"):
            pytest.skip("write statements are recorded on SQL engines")
        post = make_post(
            tags=["a", "b"],
            category_ids=["c1"],
            metadata=[MetaItem(name="m", value="1")],
            prior_permalinks=["2019/po1.html"],
            revisions=[Revision(as_of=at(0), text="HTML: one"), Revision(as_of=at(1), text="HTML: two")],
        )
        await data.post.add(post)
        with recorded_writes(data.engine) as writes:
            assert await data.post.update(post) is True
        assert writes == []
        assert await data.post.find_full_by_id("po1", "wl1") == post

    async def test_prior_permalinks(self, data, web_log):
        await data.post.add(make_post())
        await data.post.add(make_post("po2", hours=1))
        assert await data.post.update_prior_permalinks("po1", "wl1", ["2019/old.html"]) is True
        assert await data.post.find_current_permalink(["2019/old.html", "nope"], "wl1") == "po1.html"

        # A prior permalink may not be another post's current one
        with pytest.raises(ConstraintViolationError):
            await data.post.update_prior_permalinks("po1", "wl1", ["po2.html"])
        # Nor may a current permalink be another post's prior one
        with pytest.raises(ConstraintViolationError):
            await data.post.update(make_post("po2", hours=1, permalink="2019/old.html"))

    async def test_delete(self, data, web_log):
        await data.post.add(make_post(tags=["a"], category_ids=["c1"], prior_permalinks=["x.html"]))
        assert await data.post.delete("po1", "wl1") is True
        assert await data.post.find_full_by_id("po1", "wl1") is None
        assert await data.post.find_current_permalink(["x.html"], "wl1") is None

    async def test_restore_round_trip(self, data, web_log):
        posts = [make_post(f"po{idx}", hours=idx, tags=[f"t{idx}"], category_ids=["c1"]) for idx in range(5)]
        await data.post.restore(posts)
        assert await data.post.find_full_by_web_log("wl1") == posts
