from unittest.mock import patch

from clipstash.config import _parse_int_env

VAR = "CLIPSTASH_PAGE_SIZE"


def _page_size():
    return _parse_int_env(VAR, 30, 5, 200)


class TestParseIntEnv:
    def test_default_when_not_set(self):
        with patch.dict("os.environ", {}, clear=True):
            assert _page_size() == 30

    def test_valid_value(self):
        with patch.dict("os.environ", {VAR: "50"}):
            assert _page_size() == 50

    def test_clamped_below_minimum(self):
        with patch.dict("os.environ", {VAR: "2"}):
            assert _page_size() == 5

    def test_clamped_above_maximum(self):
        with patch.dict("os.environ", {VAR: "1000"}):
            assert _page_size() == 200

    def test_invalid_non_integer(self):
        with patch.dict("os.environ", {VAR: "abc"}):
            assert _page_size() == 30

    def test_boundaries(self):
        with patch.dict("os.environ", {VAR: "5"}):
            assert _page_size() == 5
        with patch.dict("os.environ", {VAR: "200"}):
            assert _page_size() == 200

    def test_menu_display_count_range(self):
        with patch.dict("os.environ", {"CLIPSTASH_MENU_DISPLAY_COUNT": "100"}):
            assert _parse_int_env("CLIPSTASH_MENU_DISPLAY_COUNT", 10, 5, 50) == 50
