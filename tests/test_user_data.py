import pytest

from conftest import make_page, make_user
from weblog_data.core.errors import ConstraintViolationError
from weblog_data.schemas.common import AccessLevel, MetaItem


class TestWebLogUserData:
    async def test_find(self, data, web_log):
        user = make_user()
        assert await data.web_log_user.find_by_id("u1", "wl1") == user
        assert await data.web_log_user.find_by_id("u1", "wl2") is None
        assert await data.web_log_user.find_by_email("u1@example.com", "wl1") == user
        assert await data.web_log_user.find_by_email("u1@example.com", "wl2") is None

    async def test_email_is_unique_per_web_log(self, data, web_log):
        with pytest.raises(ConstraintViolationError):
            await data.web_log_user.add(make_user("u2", email="u1@example.com"))
        await data.web_log_user.add(make_user("u3", "wl2", email="u1@example.com"))

    async def test_find_by_web_log_sorted_by_preferred_name(self, data, web_log):
        await data.web_log_user.add(make_user("u2", preferred_name="alice"))
        await data.web_log_user.add(make_user("u3", preferred_name="Zed"))
        names = [user.preferred_name for user in await data.web_log_user.find_by_web_log("wl1")]
        assert names == ["alice", "U1", "Zed"]

    async def test_find_names(self, data, web_log):
        await data.web_log_user.add(make_user("u2", first_name="Jane", last_name="Doe", preferred_name=""))
        names = await data.web_log_user.find_names("wl1", ["u2", "u1", "missing"])
        assert names == [MetaItem(name="u1", value="U1 User"), MetaItem(name="u2", value="Jane Doe")]
        assert await data.web_log_user.find_names("wl1", []) == []

    async def test_set_last_seen(self, data, web_log):
        assert await data.web_log_user.set_last_seen("u1", "wl1") is True
        assert (await data.web_log_user.find_by_id("u1", "wl1")).last_seen_on is not None
        assert await data.web_log_user.set_last_seen("u1", "wl2") is False

    async def test_update(self, data, web_log):
        promoted = make_user(access_level=AccessLevel.web_log_admin, url="https://me.example.com")
        assert await data.web_log_user.update(promoted) is True
        assert await data.web_log_user.find_by_id("u1", "wl1") == promoted
        assert await data.web_log_user.update(make_user("u1", "wl2")) is False

    async def test_delete(self, data, web_log):
        missing = await data.web_log_user.delete("nobody", "wl1")
        assert not missing.ok
        assert missing.error == "User does not exist"

        await data.page.add(make_page())
        blocked = await data.web_log_user.delete("u1", "wl1")
        assert not blocked.ok
        assert blocked.error == "User has pages or posts; cannot delete"

        await data.web_log_user.add(make_user("u2"))
        deleted = await data.web_log_user.delete("u2", "wl1")
        assert deleted.ok
        assert await data.web_log_user.find_by_id("u2", "wl1") is None

    async def test_restore(self, data, web_log):
        users = [make_user(f"r{idx}", preferred_name=f"R{idx}") for idx in range(3)]
        await data.web_log_user.restore(users)
        for user in users:
            assert await data.web_log_user.find_by_id(user.id, "wl1") == user
