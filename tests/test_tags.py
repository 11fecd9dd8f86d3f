"""Tests for releasegate.tags."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from releasegate.config import Options
from releasegate.models import ReleaseTag, VersionInfo, VersioningSystem
from releasegate.tags import (
    find_release_tags,
    get_last_release,
    locate_release_tag,
    render_tag,
    tag_regex,
)


class TestTagFormat:
    def test_regex_captures_version(self) -> None:
        assert tag_regex("v{version}").match("v1.2.3").group(1) == "1.2.3"

    def test_regex_with_suffix(self) -> None:
        regex = tag_regex("release-{version}.final")
        assert regex.match("release-1.2.3.final").group(1) == "1.2.3"
        assert regex.match("release-1.2.3xfinal") is None

    def test_render(self) -> None:
        assert render_tag("v{version}", "2.0.0") == "v2.0.0"


class TestFindReleaseTags:
    """Tests for find_release_tags()."""

    TAGS = ["v1.0.0", "v1.2.0", "v1.1.0", "v1.3.0-beta.1", "other", "vfoo"]

    def test_sorted_newest_first(self) -> None:
        candidates, last_prod = find_release_tags(self.TAGS, "v{version}", VersioningSystem.SEMVER)

        assert [c.tag for c in candidates] == ["v1.2.0", "v1.1.0", "v1.0.0"]
        assert last_prod == "1.2.0"

    def test_prereleases_only_with_id(self) -> None:
        candidates, last_prod = find_release_tags(
            self.TAGS, "v{version}", VersioningSystem.SEMVER, "beta"
        )

        assert candidates[0] == ReleaseTag(tag="v1.3.0-beta.1", version="1.3.0-beta.1", pre=True)
        assert last_prod == "1.2.0"

    def test_incremental(self) -> None:
        candidates, last_prod = find_release_tags(
            ["v100", "v101", "v99", "vabc", "v1.0.0"], "v{version}", VersioningSystem.INCREMENTAL
        )

        assert [c.version for c in candidates] == ["101", "100", "99"]
        assert last_prod == "101"

    def test_no_matching_tags(self) -> None:
        assert find_release_tags(["foo", "bar"], "v{version}", VersioningSystem.SEMVER) == ([], None)


class TestLocateReleaseTag:
    def test_skips_unreachable_tags(self) -> None:
        """A newer tag on another branch is passed over."""
        candidates = [
            ReleaseTag(tag="v1.2.0", version="1.2.0"),
            ReleaseTag(tag="v1.1.0", version="1.1.0"),
        ]

        result = locate_release_tag(candidates, lambda tag: tag != "v1.2.0")

        assert result.tag == "v1.1.0"

    def test_none_reachable(self) -> None:
        candidates = [ReleaseTag(tag="v1.2.0", version="1.2.0")]
        assert locate_release_tag(candidates, lambda tag: False) is None


class TestGetLastRelease:
    """Tests for get_last_release()."""

    @patch("releasegate.tags.log")
    def test_returns_reachable_tag(self, mock_log: MagicMock, mock_repo: MagicMock) -> None:
        mock_repo.list_tags.return_value = ["v1.0.0", "v1.1.0", "v1.2.0"]
        mock_repo.is_ancestor.side_effect = lambda tag: tag != "v1.2.0"
        info = VersionInfo(version="1.1.0", system=VersioningSystem.SEMVER)

        last = get_last_release(mock_repo, Options(), info)

        assert last.version == "1.1.0"
        assert last.tag == "v1.1.0"
        assert last.head == "abc123"
        assert last.last_prod_version == "1.2.0"
        assert last.version_info == info
        mock_repo.get_tag_head.assert_called_once_with("v1.1.0")

    @patch("releasegate.tags.log")
    def test_first_release(self, mock_log: MagicMock, mock_repo: MagicMock) -> None:
        mock_repo.list_tags.return_value = []
        info = VersionInfo(version="0.5.0", system=VersioningSystem.SEMVER)

        last = get_last_release(mock_repo, Options(), info)

        assert last.tag is None
        assert last.version is None
        assert last.version_info == info

    @patch("releasegate.tags.log")
    def test_configured_system_wins(self, mock_log: MagicMock, mock_repo: MagicMock) -> None:
        """A configured incremental system ignores semver-looking tags."""
        mock_repo.list_tags.return_value = ["v1.0.0", "v105"]
        info = VersionInfo(version="1.0.0", system=VersioningSystem.SEMVER)

        last = get_last_release(mock_repo, Options(version_system="incremental"), info)

        assert last.version == "105"
