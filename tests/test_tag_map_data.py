import pytest

from weblog_data.core.errors import ConstraintViolationError
from weblog_data.schemas.tag_map import TagMap


def tag_map(tag_map_id: str, tag: str, url_value: str, web_log_id: str = "wl1") -> TagMap:
    return TagMap(id=tag_map_id, web_log_id=web_log_id, tag=tag, url_value=url_value)


class TestTagMapData:
    async def test_save_and_find(self, data, web_log):
        await data.tag_map.save(tag_map("tm1", "c#", "c-sharp"))
        await data.tag_map.save(tag_map("tm2", ".net", "dot-net"))

        assert await data.tag_map.find_by_id("tm1", "wl1") == tag_map("tm1", "c#", "c-sharp")
        assert await data.tag_map.find_by_id("tm1", "wl2") is None
        assert (await data.tag_map.find_by_url_value("dot-net", "wl1")).tag == ".net"
        assert await data.tag_map.find_by_url_value("dot-net", "wl2") is None
        assert [tm.tag for tm in await data.tag_map.find_by_web_log("wl1")] == [".net", "c#"]

    async def test_save_replaces(self, data, web_log):
        await data.tag_map.save(tag_map("tm1", "c#", "c-sharp"))
        await data.tag_map.save(tag_map("tm1", "c#", "csharp"))
        assert await data.tag_map.find_by_web_log("wl1") == [tag_map("tm1", "c#", "csharp")]

    async def test_tag_is_unique_per_web_log(self, data, web_log):
        await data.tag_map.save(tag_map("tm1", "c#", "c-sharp"))
        with pytest.raises(ConstraintViolationError):
            await data.tag_map.save(tag_map("tm2", "c#", "see-sharp"))
        await data.tag_map.save(tag_map("tm3", "c#", "c-sharp", web_log_id="wl2"))

    async def test_mapping_for_tags(self, data, web_log):
        await data.tag_map.restore([
            tag_map("tm1", "c#", "c-sharp"), tag_map("tm2", ".net", "dot-net"), tag_map("tm3", "f#", "f-sharp"),
        ])
        found = await data.tag_map.find_mapping_for_tags(["f#", "c#", "python"], "wl1")
        assert [tm.url_value for tm in found] == ["c-sharp", "f-sharp"]
        assert await data.tag_map.find_mapping_for_tags([], "wl1") == []

    async def test_delete(self, data, web_log):
        await data.tag_map.save(tag_map("tm1", "c#", "c-sharp"))
        assert await data.tag_map.delete("tm1", "wl2") is False
        assert await data.tag_map.delete("tm1", "wl1") is True
        assert await data.tag_map.find_by_id("tm1", "wl1") is None
