"""Tests for the platform API client."""

import pytest

from factory_admin.platform_client import AssetNotFoundError, PlatformAPIError, PlatformClient


class TestTransport:
    """Tests for request handling and error mapping."""

    def test_list_assets_query(self, fake_platform, platform_assets):
        routes, calls = fake_platform
        routes[("GET", "/assets")] = platform_assets
        assets = PlatformClient().list_assets()
        assert len(assets) == 6
        assert calls[0][1] == "https://platform.test/assets?eff_date_to=9999-12-31"

    def test_list_assets_wrapper(self, fake_platform, platform_assets):
        routes, _ = fake_platform
        routes[("GET", "/assets")] = {"assets": platform_assets}
        assert len(PlatformClient().list_assets()) == 6

    def test_list_assets_rejects_non_list(self, fake_platform):
        routes, _ = fake_platform
        routes[("GET", "/assets")] = {"unexpected": True}
        with pytest.raises(PlatformAPIError):
            PlatformClient().list_assets()

    def test_not_found(self, fake_platform):
        with pytest.raises(AssetNotFoundError) as exc:
            PlatformClient().get_asset("ghost")
        assert exc.value.status == 404
        assert "ghost" in str(exc.value)

    def test_server_error(self, fake_platform):
        routes, _ = fake_platform
        routes[("GET", "/assets")] = 500
        with pytest.raises(PlatformAPIError) as exc:
            PlatformClient().list_assets()
        assert exc.value.status == 500

    def test_unreachable(self):
        with pytest.raises(PlatformAPIError, match="failed"):
            PlatformClient().list_assets()

    def test_base_url_trailing_slash(self):
        assert PlatformClient(base_url="http://x/api/").base_url == "http://x/api"


class TestWrites:
    """Tests for create/update/delete."""

    def test_create_posts_record(self, fake_platform):
        routes, calls = fake_platform
        routes[("POST", "/assets")] = {"asset_id": "new"}
        assert PlatformClient().create_asset({"name": "X"}) == {"asset_id": "new"}
        assert calls[0][0] == "POST"
        assert calls[0][2] == {"name": "X"}

    def test_update_uses_put_first(self, fake_platform):
        routes, calls = fake_platform
        routes[("PUT", "/assets/a1")] = {"asset_id": "a1"}
        PlatformClient().update_asset("a1", {"name": "N"})
        assert [c[0] for c in calls] == ["PUT"]

    def test_update_falls_back_to_dated_patch(self, fake_platform):
        routes, calls = fake_platform
        routes[("PUT", "/assets/a1")] = 405
        routes[("PATCH", "/assets/a1/9999-12-31")] = {"asset_id": "a1", "name": "N"}
        result = PlatformClient().update_asset("a1", {"name": "N"})
        assert result["name"] == "N"
        assert [c[0] for c in calls] == ["PUT", "PATCH", "PATCH"]
        assert calls[-1][2]["eff_date_to"] == "9999-12-31"

    def test_update_all_methods_fail(self, fake_platform):
        with pytest.raises(PlatformAPIError, match="All update methods failed"):
            PlatformClient().update_asset("a1", {"name": "N"})

    def test_delete(self, fake_platform):
        routes, calls = fake_platform
        routes[("DELETE", "/assets/a1")] = {}
        assert PlatformClient().delete_asset("a1") == {}
        assert calls[0][0] == "DELETE"
