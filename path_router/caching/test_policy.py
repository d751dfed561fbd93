import pytest

from path_router.caching.policy import (
    ASSET_DEFAULT,
    HTML_DEFAULT,
    IMAGE_CACHE,
    IMMUTABLE,
    compute_cache_control,
    is_hashed_asset,
    is_html_response,
    is_image_path,
    is_restrictive,
)

VITE_DEFAULT = "public, max-age=0, must-revalidate"


class TestHeuristics:
    @pytest.mark.parametrize(
        "path",
        [
            "/app/assets/index-353f0761.js",
            "/app/assets/style.a1b2c3d4.css",
            "/main.8f14e45fceea167a.js",
            "/chunk-ABCDEFGH.js",
        ],
    )
    def test_hashed_assets(self, path):
        assert is_hashed_asset(path)

    @pytest.mark.parametrize(
        "path",
        ["/script.js", "/index-353f07.js", "/index-353f0761.json", "/index-353f0761.js/x"],
    )
    def test_not_hashed(self, path):
        assert not is_hashed_asset(path)

    @pytest.mark.parametrize(
        "path", ["/a.jpg", "/a.JPEG", "/x/y.png", "/favicon.ico", "/p.avif", "/scan.tif"]
    )
    def test_images(self, path):
        assert is_image_path(path)

    @pytest.mark.parametrize("path", ["/a.js", "/jpg", "/image.png.html"])
    def test_not_images(self, path):
        assert not is_image_path(path)

    def test_html_detection(self):
        assert is_html_response("text/html; charset=utf-8", "/x")
        assert is_html_response("application/xhtml+xml", "/x")
        assert is_html_response("", "/page.HTML")
        assert not is_html_response("application/javascript", "/app.js")
        assert not is_html_response(None, "/app.js")

    @pytest.mark.parametrize(
        "value", ["max-age=0", "no-cache", "private, no-store", "Must-Revalidate"]
    )
    def test_restrictive(self, value):
        assert is_restrictive(value)

    @pytest.mark.parametrize("value", [None, "", "max-age=3600", "public, max-age=600"])
    def test_not_restrictive(self, value):
        assert not is_restrictive(value)


class TestComputeCacheControl:
    def test_hashed_asset_with_restrictive_upstream_is_immutable(self):
        assert (
            compute_cache_control(
                "application/javascript", "/app/index-353f0761.js", False, VITE_DEFAULT
            )
            == IMMUTABLE
        )

    def test_unhashed_asset_keeps_upstream(self):
        assert (
            compute_cache_control(
                "application/javascript", "/app/script.js", False, VITE_DEFAULT
            )
            == VITE_DEFAULT
        )

    def test_hashed_asset_with_permissive_upstream_keeps_upstream(self):
        assert (
            compute_cache_control("text/css", "/a/site-1234abcd.css", False, "max-age=3600")
            == "max-age=3600"
        )

    def test_hashed_asset_without_upstream_gets_default(self):
        assert (
            compute_cache_control("text/css", "/a/site-1234abcd.css", False, None)
            == ASSET_DEFAULT
        )

    def test_image_with_caching_enabled(self):
        assert (
            compute_cache_control("image/png", "/app/logo.png", True, "no-cache")
            == IMAGE_CACHE
        )

    def test_image_with_caching_disabled(self):
        assert (
            compute_cache_control("image/png", "/app/logo.png", False, "no-cache")
            == "no-cache"
        )

    def test_image_with_permissive_upstream(self):
        assert (
            compute_cache_control("image/png", "/app/logo.png", True, "max-age=60")
            == "max-age=60"
        )

    def test_html_without_upstream(self):
        assert (
            compute_cache_control("text/html; charset=utf-8", "/app/", False, None)
            == HTML_DEFAULT
        )

    def test_html_by_path_without_upstream(self):
        assert compute_cache_control("", "/app/index.html", False, None) == HTML_DEFAULT

    def test_asset_without_upstream(self):
        assert (
            compute_cache_control("application/javascript", "/app/script.js", False, None)
            == ASSET_DEFAULT
        )

    def test_existing_header_respected(self):
        assert (
            compute_cache_control("text/html", "/app/index.html", False, "max-age=3600")
            == "max-age=3600"
        )
