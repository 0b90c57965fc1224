"""Tests for the shared extraction helpers."""
import pytest

from reachstream.scrapers.errors import ExtractionError
from reachstream.scrapers.extract import (
    as_float,
    calculate_average_rating,
    calculate_discount,
    dig,
    extract_hashtags,
    extract_mentions,
    find_assigned_json,
    find_ld_json,
    find_script_json,
    find_sjs_data,
    first,
    format_count,
    iso_from_timestamp,
    js_round,
    meta_content,
    parse_view_count,
    strip_prefix,
    to_fixed,
    utc_now_iso,
)
from pages import assigned_page, script_page, sjs_page


class TestNumericHelpers:
    """Boundary behaviour of the numeric parsing helpers."""

    @pytest.mark.parametrize("text,expected", [
        ("0", 0),
        ("1.5M", 1500000),
        ("2.3K", 2300),
        ("1B", 1000000000),
        ("1,234 views", 1234),
        ("10K views", 10000),
        ("No views", 0),
        ("", 0),
        (None, 0),
        (42, 42),
    ])
    def test_parse_view_count(self, text, expected):
        """Test parsing of human readable view counts."""
        assert parse_view_count(text) == expected

    def test_discount_zero_when_original_not_above_current(self):
        """Test no discount unless the original price is higher."""
        assert calculate_discount(10, 10) == 0
        assert calculate_discount(8, 10) == 0

    def test_discount_zero_for_missing_prices(self):
        """Test missing prices give no discount."""
        assert calculate_discount(None, 10) == 0
        assert calculate_discount(10, 0) == 0

    def test_discount_rounds_half_up(self):
        """Test discount percentage rounds half up."""
        assert calculate_discount(100, 75) == 25
        assert calculate_discount(200, 199) == 1  # 0.5 rounds up

    def test_average_rating_empty(self):
        """Test average rating of no reviews is zero."""
        assert calculate_average_rating([]) == 0

    def test_average_rating_one_decimal(self):
        """Test average rating is rounded to one decimal."""
        reviews = [{"rating": 5}, {"rating": 4}, {"score": 4}]
        assert calculate_average_rating(reviews) == 4.3

    def test_average_rating_numeric_strings(self):
        """Test numeric string ratings are averaged."""
        assert calculate_average_rating([{"rating": "5"}, {"rating": 4}]) == 4.5

    def test_average_rating_unparseable_counts_as_zero(self):
        """Test unparseable ratings count as zero."""
        assert calculate_average_rating([{"rating": "n/a"}, {"rating": 5}]) == 2.5

    def test_as_float(self):
        """Test float coercion of numbers and strings."""
        assert as_float("4.5") == 4.5
        assert as_float(3) == 3.0
        assert as_float("n/a") is None
        assert as_float(None) is None

    def test_js_round_half_up(self):
        """Test rounding matches half-up semantics."""
        assert js_round(2.5) == 3
        assert js_round(-2.5) == -2
        assert js_round(1.49) == 1

    def test_to_fixed(self):
        """Test two decimal rounding."""
        assert to_fixed(12.345678) == 12.35

    def test_format_count(self):
        """Test compact count formatting."""
        assert format_count(1500000) == "1.5M"
        assert format_count(2300) == "2.3K"
        assert format_count(999) == "999"


class TestDig:
    """Null-safe nested lookup."""

    def test_nested_dict_and_list(self):
        """Test lookup through dicts and lists."""
        data = {"a": {"b": [{"c": 1}]}}
        assert dig(data, "a", "b", 0, "c") == 1

    def test_missing_path_returns_default(self):
        """Test a missing path returns the default."""
        assert dig({"a": {}}, "a", "b", "c", default=0) == 0

    def test_none_value_returns_default(self):
        """Test a None value returns the default."""
        assert dig({"a": None}, "a", default="x") == "x"

    def test_out_of_range_index(self):
        """Test an out of range index returns None."""
        assert dig({"a": []}, "a", 0) is None

    def test_negative_index(self):
        """Test negative list indexes."""
        assert dig({"a": [1, 2, 3]}, "a", -1) == 3

    def test_first_skips_falsy(self):
        """Test first returns the first truthy value."""
        assert first(None, "", 0, "value") == "value"
        assert first(None, default=5) == 5


class TestBlobLocators:
    """Embedded data blob locators."""

    def test_find_script_json(self):
        """Test JSON is read from a script tag by id."""
        html = script_page("__DATA__", {"x": 1})
        assert find_script_json(html, "__DATA__") == {"x": 1}

    def test_find_script_json_missing(self):
        """Test a missing script tag raises an extraction error."""
        with pytest.raises(ExtractionError, match="Could not find profile data in HTML"):
            find_script_json("<html></html>", "__DATA__", "profile data")

    def test_find_script_json_invalid(self):
        """Test invalid script JSON raises an extraction error."""
        html = '<script id="__DATA__" type="application/json">{not json</script>'
        with pytest.raises(ExtractionError, match="Could not parse"):
            find_script_json(html, "__DATA__")

    def test_find_assigned_json_nested_terminator(self):
        """Test assigned JSON survives a terminator inside a string."""
        payload = {"text": "ends with }; inside", "nested": {"a": [1, 2]}}
        html = assigned_page("var ytInitialData", payload)
        assert find_assigned_json(html, "var ytInitialData") == payload

    def test_find_assigned_json_without_spaces(self):
        """Test assignment without spaces around the equals sign."""
        html = '<script>window.__INITIAL_STATE__={"ok":true};</script>'
        assert find_assigned_json(html, "window.__INITIAL_STATE__") == {"ok": True}

    def test_find_assigned_json_missing(self):
        """Test a missing assignment raises an extraction error."""
        with pytest.raises(ExtractionError, match="Could not find video data in HTML"):
            find_assigned_json("<html></html>", "var ytInitialData", "video data")

    def test_find_sjs_data_by_key(self):
        """Test data-sjs blocks are searched by key."""
        html = sjs_page({"user": {"username": "zuck"}})
        assert find_sjs_data(html, "user") == {"username": "zuck"}

    def test_find_sjs_data_scans_every_block(self):
        """Test later data-sjs blocks are searched too."""
        html = sjs_page({"other": 1}) + sjs_page({"user": {"pk": "1"}})
        assert find_sjs_data(html, "user") == {"pk": "1"}

    def test_find_sjs_data_missing_key(self):
        """Test a missing key raises the given message."""
        html = sjs_page({"other": 1})
        with pytest.raises(ExtractionError, match="User not found"):
            find_sjs_data(html, "user", missing="User not found")

    def test_find_sjs_data_no_blocks(self):
        """Test a page without data-sjs blocks raises."""
        with pytest.raises(ExtractionError, match="Could not find user data in HTML"):
            find_sjs_data("<html></html>", "user", "user data")

    def test_find_ld_json_flattens_lists(self):
        """Test ld+json blocks are flattened and bad ones skipped."""
        html = (
            '<script type="application/ld+json">{"@type": "Organization"}</script>'
            '<script type="application/ld+json">[{"@type": "Person"}, {"@type": "Thing"}]</script>'
            '<script type="application/ld+json">{broken</script>'
        )
        assert [item["@type"] for item in find_ld_json(html)] == ["Organization", "Person", "Thing"]

    def test_meta_content_unescapes(self):
        """Test meta content is HTML unescaped."""
        html = '<meta property="og:title" content="Tom &amp; Jerry">'
        assert meta_content(html, "og:title") == "Tom & Jerry"
        assert meta_content(html, "og:description") is None


class TestTextHelpers:

    def test_hashtags_and_mentions(self):
        """Test hashtag and mention extraction."""
        text = "Launch day #space #NASA with @nasa and @spacex"
        assert extract_hashtags(text) == ["#space", "#NASA"]
        assert extract_mentions(text) == ["@nasa", "@spacex"]
        assert extract_hashtags(None) == []

    def test_strip_prefix_only_once(self):
        """Test a prefix is stripped once."""
        assert strip_prefix("@@user", "@") == "@user"
        assert strip_prefix("user", "@") == "user"

    def test_timestamps(self):
        """Test ISO timestamp formatting."""
        assert iso_from_timestamp(0) is None
        assert iso_from_timestamp(1700000000) == "2023-11-14T22:13:20.000Z"
        now = utc_now_iso()
        assert now.endswith("Z") and len(now) == 24
