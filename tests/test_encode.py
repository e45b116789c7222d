"""Tests for FLUX encoder."""

import datetime
import decimal
import sys
from pathlib import Path

import pytest

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from flux import EncodeOptions, UnsupportedValueError, encode, encode_lines


class TestPrimitives:
    """Test encoding of root scalar values."""

    def test_null(self):
        assert encode(None) == "-"

    def test_booleans(self):
        assert encode(True) == "T"
        assert encode(False) == "F"

    def test_integer(self):
        assert encode(42) == "42"
        assert encode(-17) == "-17"
        assert encode(0) == "0"

    def test_float(self):
        assert encode(3.14) == "3.14"
        assert encode(-2.5) == "-2.5"

    def test_whole_float(self):
        assert encode(2.0) == "2"
        assert encode(0.0) == "0"

    def test_float_special_values(self):
        assert encode(float("nan")) == "-"
        assert encode(float("inf")) == "-"
        assert encode(float("-inf")) == "-"

    def test_simple_string(self):
        assert encode("hello") == "hello"
        assert encode("hello world") == "hello world"

    def test_comma_forces_quotes(self):
        assert encode("Hello, world") == '"Hello, world"'

    def test_string_needs_quotes(self):
        assert encode("key: value") == '"key: value"'
        assert encode("line1\nline2") == '"line1\\nline2"'
        assert encode("col1\tcol2") == '"col1\\tcol2"'
        assert encode("") == '""'

    def test_reserved_tokens(self):
        assert encode("-") == '"-"'
        assert encode("T") == '"T"'
        assert encode("F") == '"F"'
        assert encode("null") == '"null"'

    def test_numeric_strings(self):
        assert encode("123") == '"123"'
        assert encode("-4.5") == '"-4.5"'
        assert encode("1e5") == '"1e5"'

    def test_email_stays_bare(self):
        assert encode("alice@example.com") == "alice@example.com"

    def test_date(self):
        assert encode(datetime.date(2024, 1, 15)) == "2024-01-15"

    def test_datetime_at_root_is_quoted(self):
        # A bare colon on a lone line would read as a key
        assert encode(datetime.datetime(2024, 1, 15, 10, 30)) == '"2024-01-15T10:30:00"'


class TestObjects:
    """Test encoding of objects."""

    def test_simple_object(self):
        assert encode({"name": "Alice", "age": 25}) == "name: Alice\nage: 25"

    def test_nested_object(self):
        data = {"user": {"name": "Bob", "role": "admin"}}
        assert encode(data) == "user:\n  name: Bob\n  role: admin"

    def test_empty_nested_object(self):
        assert encode({"data": {}}) == "data:"

    def test_empty_root_object(self):
        assert encode({}) == ""

    def test_deeply_nested(self):
        assert encode({"a": {"b": {"c": 1}}}) == "a:\n  b:\n    c: 1"

    def test_scalar_values(self):
        data = {"v": None, "ok": True, "no": False, "n": 2.5}
        assert encode(data) == "v: -\nok: T\nno: F\nn: 2.5"

    def test_quoted_value(self):
        assert encode({"msg": "Hello, world"}) == 'msg: "Hello, world"'

    def test_url_value_is_quoted(self):
        assert encode({"url": "https://example.com"}) == 'url: "https://example.com"'

    def test_timestamp_value_stays_bare(self):
        data = {"created": "2024-01-15T10:30:00Z"}
        assert encode(data) == "created: 2024-01-15T10:30:00Z"

    def test_quoted_keys(self):
        assert encode({"key with spaces": "v"}) == '"key with spaces": v'
        assert encode({"123": "x"}) == '"123": x'

    def test_numeric_keys_are_stringified(self):
        assert encode({1: "a"}) == '"1": a'

    def test_dotted_key_stays_bare(self):
        assert encode({"user.name": "x"}) == "user.name: x"

    def test_custom_indent(self):
        assert encode({"a": {"b": 1}}, EncodeOptions(indent=4)) == "a:\n    b: 1"


class TestArrays:
    """Test encoding of inline and list-form arrays."""

    def test_inline_strings(self):
        assert encode({"tags": ["admin", "user"]}) == "tags[2]: admin,user"

    def test_inline_numbers(self):
        assert encode({"nums": [1, 2, 3]}) == "nums[3]: 1,2,3"

    def test_inline_mixed(self):
        assert encode({"vals": [1, "a", True, None]}) == "vals[4]: 1,a,T,-"

    def test_inline_quoted(self):
        assert encode({"vals": ["a,b", "c"]}) == 'vals[2]: "a,b",c'

    def test_empty_array(self):
        assert encode({"items": []}) == "items[0]:"

    def test_tuple_and_set(self):
        assert encode({"t": (1, 2)}) == "t[2]: 1,2"
        assert encode({"s": {3, 1, 2}}) == "s[3]: 1,2,3"

    def test_root_inline_array(self):
        assert encode([1, 2, 3]) == "[3]: 1,2,3"

    def test_list_form_mixed(self):
        assert encode({"items": [1, {"x": 1}]}) == "items[2]:\n  - 1\n  - x: 1"

    def test_list_form_heterogeneous_objects(self):
        data = {"items": [{"a": 1, "b": 2}, {"c": 3}]}
        assert encode(data) == "items[2]:\n  - a: 1\n    b: 2\n  - c: 3"

    def test_list_form_empty_objects(self):
        assert encode({"items": [{}, {}]}) == "items[2]:\n  -\n  -"

    def test_nested_arrays_are_blobs(self):
        assert encode({"m": [[1, 2], [3]]}) == "m[2]:\n  - [1,2]\n  - [3]"

    def test_nested_containers_in_items(self):
        data = {"items": [{"a": {"b": 1}}, 5]}
        assert encode(data) == 'items[2]:\n  - a: {"b":1}\n  - 5'

    def test_list_item_colon_is_quoted(self):
        assert encode({"items": [{"a": 1}, "x: y"]}) == 'items[2]:\n  - a: 1\n  - "x: y"'


class TestTables:
    """Test encoding of arrays of uniform objects."""

    def test_columnar_with_types(self):
        data = {"users": [{"id": 1, "name": "Alice"}, {"id": 2, "name": "Bob"}]}
        assert encode(data) == "@users[2]:\n  id name\n  @i @s\n  1,Alice\n  2,Bob"

    def test_columnar_without_types(self):
        data = {"users": [{"id": 1, "name": "Alice"}, {"id": 2, "name": "Bob"}]}
        result = encode(data, EncodeOptions(types=False))
        assert result == "@users[2]:\n  id,name\n  1,Alice\n  2,Bob"

    def test_fields_are_sorted(self):
        data = {"users": [{"name": "Alice", "id": 1}]}
        assert encode(data).split("\n")[1] == "  id name"

    def test_root_table(self):
        assert encode([{"a": 1}, {"a": 2}]) == "@[2]:\n  a\n  @i\n  1\n  2"

    def test_nested_table(self):
        data = {"data": {"rows": [{"a": 1}]}}
        assert encode(data) == "data:\n  @rows[1]:\n    a\n    @i\n    1"

    def test_quoted_cell(self):
        data = {"rows": [{"id": 1, "note": "x, y"}]}
        assert encode(data).split("\n")[-1] == '  1,"x, y"'

    def test_blob_cell_is_quoted(self):
        data = {"rows": [{"id": 1, "meta": {"k": 1}}]}
        assert encode(data).split("\n")[-1] == '  1,"{\\"k\\":1}"'

    def test_type_line(self):
        data = {
            "rows": [
                {
                    "email": "a@b.com",
                    "url": "https://x.io",
                    "uid": "123e4567-e89b-12d3-a456-426614174000",
                    "flag": True,
                    "ts": "2024-01-15T10:30:00Z",
                    "score": 1.5,
                    "meta": {"k": 1},
                }
            ]
        }
        lines = encode(data).split("\n")
        assert lines[1] == "  email flag meta score ts uid url"
        assert lines[2] == "  @e @b @j @f @t @$ @u"

    def test_hash_and_null_tags(self):
        data = {"rows": [{"h": "d41d8cd98f00b204e9800998ecf8427e", "x": None, "y": 1}] * 2}
        lines = encode(data).split("\n")
        assert lines[2] == "  @h @n @i"

    def test_timestamp_cells_stay_bare(self):
        data = {"rows": [{"at": datetime.datetime(2024, 1, 15, 10, 30)}]}
        assert encode(data).split("\n")[-1] == "  2024-01-15T10:30:00"


class TestSparse:
    """Test sparse table layout."""

    @pytest.fixture
    def logs(self):
        rows = [{"id": 1, "level": "error", "error": "timeout", "code": 504}]
        for i in range(2, 6):
            rows.append({"id": i, "level": "info", "error": None, "code": None})
        return {"logs": rows}

    def test_sparse_layout(self, logs):
        assert encode(logs) == (
            "@logs[5]?:\n"
            "  code? error? id level\n"
            "  @i @s @i @s\n"
            "  504,timeout,1,error\n"
            "  -,-,2,info\n"
            "  -,-,3,info\n"
            "  -,-,4,info\n"
            "  -,-,5,info"
        )

    def test_sparse_without_types(self, logs):
        lines = encode(logs, EncodeOptions(types=False)).split("\n")
        assert lines[1] == "  code?,error?,id,level"
        assert lines[2] == "  504,timeout,1,error"

    def test_sparse_threshold_option(self, logs):
        result = encode(logs, EncodeOptions(sparse_threshold=90))
        assert result.startswith("@logs[5]:\n  code error id level\n")


class TestDictionary:
    """Test dictionary-coded table layout."""

    @pytest.fixture
    def items(self):
        return {
            "items": [
                {"id": i, "status": "active" if i % 2 else "inactive"} for i in range(1, 13)
            ]
        }

    def test_dictionary_layout(self, items):
        lines = encode(items).split("\n")
        assert lines[:6] == [
            "@items[12]^status:",
            "  id status",
            "  @i @s",
            "  ^status:active,inactive",
            "  1,0",
            "  2,1",
        ]
        assert len(lines) == 16

    def test_dictionary_nulls(self, items):
        items["items"][2]["status"] = None
        lines = encode(items).split("\n")
        assert lines[6] == "  3,-"

    def test_dictionary_values_are_quoted(self):
        rows = [{"city": "New York, NY" if i % 3 else "Paris"} for i in range(12)]
        lines = encode({"rows": rows}).split("\n")
        assert lines[0] == "@rows[12]^city:"
        assert lines[3] == '  ^city:Paris,"New York, NY"'
        assert lines[4:7] == ["  0", "  1", "  1"]

    def test_ten_rows_stay_columnar(self):
        rows = [{"status": "on" if i % 2 else "off"} for i in range(10)]
        assert encode({"rows": rows}).startswith("@rows[10]:\n")


class TestStats:
    """Test statistics lines."""

    def test_stats_lines(self):
        rows = [{"id": i, "score": i * 10} for i in range(1, 7)]
        lines = encode({"rows": rows}, EncodeOptions(stats=True)).split("\n")
        assert lines[3:7] == [
            "  sum:,21,210",
            "  avg:,3.50,35.00",
            "  min:,1,10",
            "  max:,6,60",
        ]
        assert lines[7] == "  1,10"

    def test_no_stats_for_small_tables(self):
        rows = [{"id": i, "score": i * 10} for i in range(1, 6)]
        result = encode({"rows": rows}, EncodeOptions(stats=True))
        assert "sum:" not in result
        assert "avg:" not in result

    def test_non_numeric_slots_are_empty(self):
        rows = [{"id": i, "name": "n"} for i in range(1, 7)]
        lines = encode({"rows": rows}, EncodeOptions(stats=True)).split("\n")
        assert lines[3] == "  sum:,21,"

    def test_no_numeric_fields(self):
        rows = [{"name": f"n{i}"} for i in range(7)]
        result = encode({"rows": rows}, EncodeOptions(stats=True))
        assert "sum:" not in result

    def test_stats_off_by_default(self):
        rows = [{"id": i} for i in range(10)]
        assert "sum:" not in encode({"rows": rows})


class TestOptions:
    """Test encoder options."""

    def test_compress_marker(self):
        assert encode({"a": 1}, EncodeOptions(compress=True)) == "#FLUX:COMPRESSED\na: 1"

    def test_mode_is_advisory(self):
        data = {"users": [{"id": 1, "name": "Alice"}]}
        assert encode(data, EncodeOptions(mode="columnar")) == encode(data)

    def test_invalid_mode(self):
        with pytest.raises(ValueError):
            EncodeOptions(mode="bogus")

    def test_invalid_indent(self):
        with pytest.raises(ValueError):
            EncodeOptions(indent=0)

    def test_invalid_sparse_threshold(self):
        with pytest.raises(ValueError):
            EncodeOptions(sparse_threshold=150)

    def test_encode_lines(self):
        assert list(encode_lines({"a": 1, "b": 2})) == ["a: 1", "b: 2"]


class TestNormalization:
    """Test normalization of non-JSON Python values."""

    def test_time_becomes_string(self):
        assert encode({"when": datetime.time(10, 30)}) == 'when: "10:30:00"'

    def test_unsupported_value(self):
        with pytest.raises(UnsupportedValueError):
            encode({"a": object()})

    def test_unsupported_is_type_error(self):
        with pytest.raises(TypeError):
            encode({"a": decimal.Decimal("1.5")})

    def test_unsupported_key(self):
        with pytest.raises(UnsupportedValueError):
            encode({(1, 2): "x"})

    def test_no_partial_output(self):
        lines = encode_lines({"ok": 1, "bad": object()})
        with pytest.raises(UnsupportedValueError):
            next(lines)
