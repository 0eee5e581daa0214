import pytest

from conftest import BASE_TIME, at
from weblog_data.schemas.theme import Theme, ThemeAsset, ThemeAssetId, ThemeTemplate
from weblog_data.schemas.upload import Upload


def theme(theme_id: str = "default", *templates: ThemeTemplate) -> Theme:
    return Theme(id=theme_id, name=f"{theme_id} theme", version="1.0", templates=list(templates))


def asset(theme_id: str, path: str, data: bytes = b"\x89PNG\x00") -> ThemeAsset:
    return ThemeAsset(id=ThemeAssetId(theme_id=theme_id, path=path), updated_on=BASE_TIME, data=data)


class TestThemeData:
    async def test_save_and_find(self, data):
        saved = theme("default", ThemeTemplate(name="single-post", text="{{ post }}"),
                      ThemeTemplate(name="index", text="{{ posts }}"))
        await data.theme.save(saved)

        assert await data.theme.exists("default") is True
        assert await data.theme.exists("other") is False
        assert await data.theme.find_by_id("default") == saved
        without_text = await data.theme.find_by_id_without_text("default")
        assert [(t.name, t.text) for t in without_text.templates] == [("index", ""), ("single-post", "")]

    async def test_save_replaces_templates(self, data):
        await data.theme.save(theme("default", ThemeTemplate(name="a", text="1"), ThemeTemplate(name="b", text="2")))
        changed = theme("default", ThemeTemplate(name="a", text="one"), ThemeTemplate(name="c", text="3"))
        await data.theme.save(changed)
        assert await data.theme.find_by_id("default") == changed

    async def test_all_excludes_admin(self, data):
        for theme_id in ("zen", "admin", "default"):
            await data.theme.save(theme(theme_id, ThemeTemplate(name="index", text="x")))
        themes = await data.theme.all()
        assert [t.id for t in themes] == ["default", "zen"]
        assert all(template.text == "" for t in themes for template in t.templates)

    async def test_delete_removes_assets(self, data):
        await data.theme.save(theme("default"))
        await data.theme_asset.save(asset("default", "style.css"))
        assert await data.theme.delete("default") is True
        assert await data.theme.find_by_id("default") is None
        assert await data.theme_asset.find_by_theme("default") == []
        assert await data.theme.delete("default") is False


class TestThemeAssetData:
    async def test_save_and_find(self, data):
        await data.theme_asset.save(asset("default", "img/logo.png"))
        await data.theme_asset.save(asset("default", "css/style.css", b"body {}"))
        await data.theme_asset.save(asset("alt", "style.css"))

        found = await data.theme_asset.find_by_id(ThemeAssetId(theme_id="default", path="css/style.css"))
        assert found.data == b"body {}"
        assert await data.theme_asset.find_by_id(ThemeAssetId.parse("default/missing.css")) is None

        listed = await data.theme_asset.find_by_theme("default")
        assert [str(a.id) for a in listed] == ["default/css/style.css", "default/img/logo.png"]
        assert all(a.data == b"" for a in listed)
        with_data = await data.theme_asset.find_by_theme_with_data("default")
        assert [a.data for a in with_data] == [b"body {}", b"\x89PNG\x00"]
        assert [str(a.id) for a in await data.theme_asset.all()] == [
            "alt/style.css", "default/css/style.css", "default/img/logo.png"
        ]

    async def test_save_overwrites(self, data):
        await data.theme_asset.save(asset("default", "style.css", b"old"))
        newer = ThemeAsset(id=ThemeAssetId(theme_id="default", path="style.css"), updated_on=at(1), data=b"new")
        await data.theme_asset.save(newer)
        assert await data.theme_asset.find_by_id(newer.id) == newer

    async def test_delete_by_theme(self, data):
        await data.theme_asset.save(asset("default", "a.css"))
        await data.theme_asset.save(asset("alt", "a.css"))
        await data.theme_asset.delete_by_theme("default")
        assert [str(a.id) for a in await data.theme_asset.all()] == ["alt/a.css"]


def upload(upload_id: str, path: str, web_log_id: str = "wl1") -> Upload:
    return Upload(id=upload_id, web_log_id=web_log_id, path=path, updated_on=BASE_TIME, data=path.encode())


class TestUploadData:
    async def test_add_and_find(self, data, web_log):
        await data.upload.add(upload("up1", "2024/01/b.png"))
        await data.upload.add(upload("up2", "2024/01/a.png"))

        assert await data.upload.find_by_path("2024/01/a.png", "wl1") == upload("up2", "2024/01/a.png")
        assert await data.upload.find_by_path("2024/01/a.png", "wl2") is None
        listed = await data.upload.find_by_web_log("wl1")
        assert [up.path for up in listed] == ["2024/01/a.png", "2024/01/b.png"]
        assert all(up.data == b"" for up in listed)
        assert [up.data for up in await data.upload.find_by_web_log_with_data("wl1")] == [
            b"2024/01/a.png", b"2024/01/b.png"
        ]

    async def test_delete(self, data, web_log):
        await data.upload.add(upload("up1", "a.png"))
        missing = await data.upload.delete("up1", "wl2")
        assert not missing.ok
        assert missing.error == "Upload ID up1 not found"

        deleted = await data.upload.delete("up1", "wl1")
        assert deleted.ok
        assert deleted.value == "a.png"
        assert await data.upload.find_by_web_log("wl1") == []

    async def test_restore_in_batches(self, data, web_log):
        uploads = [upload(f"up{idx}", f"file{idx}.txt") for idx in range(3)]
        await data.upload.restore(uploads)
        assert await data.upload.find_by_web_log_with_data("wl1") == uploads
