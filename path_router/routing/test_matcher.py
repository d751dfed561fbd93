import json
from urllib.parse import urlsplit

import pytest

from path_router.routing.matcher import compute_target, match_route
from path_router.routing.table import build_route_table

ROUTES = {
    "/tone-curve/*": "proxy:http://tone-curve.underconstruction.fun/*",
    "/shutterspeak/*": "proxy:https://shutterspeak.underconstruction.fun/*",
    "/claude-chat-viewer/*": "proxy:https://underconstruction.fun/claude-chat-viewer/*",
    "/dialog-explorer/*": "proxy:https://dialog-explorer.underconstruction.fun/*",
    "/about": "https://example.org/about-us",
    "/old-blog": "redirect:https://blog.example.org",
}


@pytest.fixture
def table():
    return build_route_table(json.dumps(ROUTES))


def match_of(url, table):
    parts = urlsplit(url)
    return compute_target(parts.path, parts.query, table)


def target_of(url, table):
    match = match_of(url, table)
    return None if match is None else match.target_url


class TestDomainRouting:
    def test_routes_to_different_domain(self, table):
        assert (
            target_of("https://example.com/tone-curve/editor", table)
            == "http://tone-curve.underconstruction.fun/editor"
        )

    def test_bare_prefix_targets_root(self, table):
        assert (
            target_of("https://example.com/shutterspeak", table)
            == "https://shutterspeak.underconstruction.fun/"
        )

    def test_prefix_with_trailing_slash_targets_root(self, table):
        assert (
            target_of("https://example.com/shutterspeak/", table)
            == "https://shutterspeak.underconstruction.fun/"
        )


class TestPathRouting:
    def test_routes_to_path_on_different_domain(self, table):
        assert (
            target_of("https://example.com/claude-chat-viewer/settings", table)
            == "https://underconstruction.fun/claude-chat-viewer/settings"
        )

    def test_preserves_multiple_segments(self, table):
        assert (
            target_of("https://example.com/dialog-explorer/test/nested/path", table)
            == "https://dialog-explorer.underconstruction.fun/test/nested/path"
        )

    def test_bare_prefix_on_target_with_path(self, table):
        assert (
            target_of("https://example.com/claude-chat-viewer", table)
            == "https://underconstruction.fun/claude-chat-viewer/"
        )


class TestQueryParameters:
    def test_simple_query(self, table):
        assert (
            target_of("https://example.com/tone-curve/editor?param=value", table)
            == "http://tone-curve.underconstruction.fun/editor?param=value"
        )

    def test_multiple_query_parameters(self, table):
        assert (
            target_of(
                "https://example.com/tone-curve/editor?param1=value1&param2=value2",
                table,
            )
            == "http://tone-curve.underconstruction.fun/editor?param1=value1&param2=value2"
        )

    def test_special_characters_untouched(self, table):
        assert (
            target_of(
                "https://example.com/tone-curve/editor?q=test%20space&filter=type%3Aimage",
                table,
            )
            == "http://tone-curve.underconstruction.fun/editor?q=test%20space&filter=type%3Aimage"
        )

    def test_bare_prefix_with_query(self, table):
        assert (
            target_of("https://example.com/shutterspeak?x=1", table)
            == "https://shutterspeak.underconstruction.fun/?x=1"
        )


class TestPassThrough:
    def test_unknown_path(self, table):
        assert match_of("https://example.com/unknown-path", table) is None

    @pytest.mark.parametrize("path", ["/tone-curve-extra", "/tone-curve-editor"])
    def test_shared_string_prefix_does_not_match(self, table, path):
        assert match_of(f"https://example.com{path}", table) is None

    def test_empty_table(self):
        assert match_of("https://example.com/anything", ()) is None


class TestRedirectRoutes:
    def test_exact_match_only(self, table):
        assert match_of("https://example.com/about/team", table) is None
        assert match_of("https://example.com/about/", table) is None

    def test_redirect_uses_target_as_given(self, table):
        match = match_of("https://example.com/about", table)
        assert match.kind == "redirect"
        assert match.target_url == "https://example.org/about-us"

    def test_redirect_preserves_query(self, table):
        assert (
            target_of("https://example.com/about?utm=x&y=2", table)
            == "https://example.org/about-us?utm=x&y=2"
        )

    def test_legacy_marker(self, table):
        match = match_of("https://example.com/old-blog", table)
        assert match.kind == "redirect"
        assert match.target_url == "https://blog.example.org"


class TestOrdering:
    def test_first_entry_wins(self):
        table = build_route_table(
            json.dumps(
                {
                    "/docs/api/*": "proxy:https://api-docs.example.com/*",
                    "/docs/*": "proxy:https://docs.example.com/*",
                }
            )
        )
        assert (
            target_of("https://example.com/docs/api/v1", table)
            == "https://api-docs.example.com/v1"
        )
        assert target_of("https://example.com/docs/guide", table) == "https://docs.example.com/guide"

    def test_broad_entry_first_shadows_narrow_one(self):
        table = build_route_table(
            json.dumps(
                {
                    "/docs/*": "proxy:https://docs.example.com/*",
                    "/docs/api/*": "proxy:https://api-docs.example.com/*",
                }
            )
        )
        assert (
            target_of("https://example.com/docs/api/v1", table)
            == "https://docs.example.com/api/v1"
        )


class TestMatchRoute:
    def test_remaining_path(self, table):
        route, remaining = match_route("/dialog-explorer/a/b", table)
        assert route.pattern == "/dialog-explorer/*"
        assert remaining == "/a/b"

    def test_root_wildcard_matches_everything(self):
        table = build_route_table({"/*": "proxy:https://everything.example.com/*"})
        route, remaining = match_route("/any/path", table)
        assert remaining == "/any/path"
        assert match_route("/", table)[1] == "/"

    def test_wildcard_route_with_plain_target_ignores_subpath(self):
        table = build_route_table({"/app/*": "proxy:https://app.example.com/landing"})
        assert (
            target_of("https://example.com/app/deep/link?a=1", table)
            == "https://app.example.com/landing?a=1"
        )


class TestDecodedPaths:
    """compute_target receives the decoded path and the raw query separately."""

    def test_decoded_hash_stays_in_path(self, table):
        match = compute_target("/tone-curve/file#name", "x=1", table)
        assert match.target_url == "http://tone-curve.underconstruction.fun/file%23name?x=1"

    def test_decoded_question_mark_stays_in_path(self, table):
        match = compute_target("/tone-curve/what?is", "x=1", table)
        assert match.target_url == "http://tone-curve.underconstruction.fun/what%3Fis?x=1"

    def test_spaces_and_percent_reencoded(self, table):
        match = compute_target("/dialog-explorer/a b/100%", "", table)
        assert match.target_url == "https://dialog-explorer.underconstruction.fun/a%20b/100%25"

    def test_subdelims_kept(self, table):
        match = compute_target("/dialog-explorer/v1;rev=2/@user", "", table)
        assert match.target_url == "https://dialog-explorer.underconstruction.fun/v1;rev=2/@user"

    def test_raw_query_passed_through(self, table):
        match = compute_target("/about", "q=a%26b&x=%23", table)
        assert match.target_url == "https://example.org/about-us?q=a%26b&x=%23"
