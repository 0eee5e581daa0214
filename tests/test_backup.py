import pytest

from conftest import BASE_TIME, build_data, make_category, make_page, make_post, make_user, make_web_log
from weblog_data.backup import (
    Archive, create_backup, import_prior_permalinks, read_archive, restore_backup, write_archive
)
from weblog_data.schemas.common import MetaItem
from weblog_data.schemas.tag_map import TagMap
from weblog_data.schemas.theme import Theme, ThemeAsset, ThemeAssetId, ThemeTemplate
from weblog_data.schemas.upload import Upload


@pytest.fixture(name="content")
async def content_fixture(data, web_log):
    await data.theme.save(Theme(id="default", name="Default", version="2", templates=[ThemeTemplate(name="index")]))
    await data.theme_asset.save(
        ThemeAsset(id=ThemeAssetId(theme_id="default", path="logo.png"), updated_on=BASE_TIME, data=b"\x00\xff")
    )
    await data.category.add(make_category("c1", "News"))
    await data.tag_map.save(TagMap(id="tm1", web_log_id="wl1", tag="c#", url_value="c-sharp"))
    await data.page.add(make_page(metadata=[MetaItem(name="a", value="1")], prior_permalinks=["old-page.html"]))
    await data.post.add(make_post(category_ids=["c1"], tags=["c#"]))
    await data.upload.add(
        Upload(id="up1", web_log_id="wl1", path="2024/file.bin", updated_on=BASE_TIME, data=b"\x01\x02")
    )
    return data


class TestBackup:
    async def test_unknown_web_log(self, data):
        assert await create_backup(data, "missing") is None

    async def test_archive_contents(self, content):
        archive = await create_backup(content, "wl1")
        assert archive.web_log == make_web_log()
        assert archive.users == [make_user()]
        assert archive.theme.id == "default"
        assert archive.assets[0].to_asset().data == b"\x00\xff"
        assert archive.pages == [await content.page.find_full_by_id("p1", "wl1")]
        assert archive.pages[0].prior_permalinks == ["old-page.html"]
        assert archive.posts[0].revisions == make_post().revisions
        assert archive.uploads[0].to_upload().data == b"\x01\x02"

    async def test_archive_file(self, content, tmp_path):
        archive = await create_backup(content, "wl1")
        path = tmp_path / "wl1.json"
        write_archive(archive, path)
        assert read_archive(path) == archive


class TestRestore:
    async def test_restore_replaces_existing_web_log(self, content):
        archive = await create_backup(content, "wl1")
        await content.post.delete("po1", "wl1")

        restored = await restore_backup(content, archive)
        assert restored == make_web_log()
        assert await create_backup(content, "wl1") == archive

    async def test_restore_under_new_url_base(self, content):
        archive = await create_backup(content, "wl1")
        restored = await restore_backup(content, archive, "https://moved.example.com")
        assert restored.url_base == "https://moved.example.com"
        assert (await content.web_log.find_by_host("https://moved.example.com")).id == "wl1"
        assert await content.web_log.find_by_host("https://one.example.com") is None

    @pytest.mark.parametrize("target", ["relational", "hybrid", "document"])
    async def test_restore_into_another_store(self, content, settings, target):
        archive = Archive.model_validate_json((await create_backup(content, "wl1")).model_dump_json())
        other = build_data(target, settings)
        await other.start_up()
        await restore_backup(other, archive)
        assert await create_backup(other, "wl1") == archive

    async def test_existing_theme_is_kept(self, content):
        archive = await create_backup(content, "wl1")
        newer = Theme(id="default", name="Default", version="3")
        await content.theme.save(newer)
        await restore_backup(content, archive)
        assert await content.theme.find_by_id("default") == newer


class TestImportPriorPermalinks:
    async def test_import(self, data, web_log):
        await data.post.add(make_post(prior_permalinks=["older.html"]))
        lines = ["2019/po1.html po1.html", "", "gone.html missing.html", "lonely"]

        assert await import_prior_permalinks(data, "https://one.example.com", lines) == 1
        post = await data.post.find_full_by_id("po1", "wl1")
        assert post.prior_permalinks == ["2019/po1.html", "older.html"]
        assert await data.post.find_current_permalink(["2019/po1.html"], "wl1") == "po1.html"

    async def test_unknown_web_log(self, data):
        assert await import_prior_permalinks(data, "https://nowhere.example.com", ["a b"]) == 0
