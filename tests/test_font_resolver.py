"""
Tests for font resolution.
"""

from vedit_engine.services.font_resolver import FONT_CANDIDATES, FontResolver, candidates_for_platform


class TestFontResolver:
    """Tests for FontResolver."""

    def test_first_existing_candidate_wins(self):
        resolver = FontResolver(candidates=["/a.ttf", "/b.ttf", "/c.ttf"], exists=lambda p: p != "/a.ttf")
        assert resolver.resolve() == "/b.ttf"

    def test_none_when_nothing_exists(self):
        resolver = FontResolver(candidates=["/a.ttf"], exists=lambda p: False)
        assert resolver.resolve() is None

    def test_result_is_cached(self):
        calls = []

        def exists(path):
            calls.append(path)
            return True

        resolver = FontResolver(candidates=["/a.ttf"], exists=exists)
        resolver.resolve()
        resolver.resolve()
        assert calls == ["/a.ttf"]

    def test_real_file(self, tmp_path):
        font = tmp_path / "font.ttf"
        font.write_bytes(b"font")
        resolver = FontResolver(candidates=[str(tmp_path / "missing.ttf"), str(font)])
        assert resolver.resolve() == str(font)


class TestCandidates:
    """Tests for per-platform candidate lists."""

    def test_windows(self):
        assert candidates_for_platform("win32") == FONT_CANDIDATES["win32"]

    def test_macos(self):
        assert candidates_for_platform("darwin")[0] == "/System/Library/Fonts/Helvetica.ttc"

    def test_unknown_platform_uses_linux_list(self):
        assert candidates_for_platform("freebsd13") == FONT_CANDIDATES["linux"]
