"""Unit tests for ConfigEntry and ConfigUpdate."""

import pytest

from src.domain.config import ConfigEntry, ConfigType, ConfigUpdate, is_valid_key
from src.domain.errors import ValidationError


@pytest.fixture
def entry() -> ConfigEntry:
    return ConfigEntry(
        key="feature.flags",
        value='{"beta": true}',
        type=ConfigType.JSON,
        description="Feature flags",
        tags=["features", "ui"],
        created_at=1000,
        updated_at=2000,
    )


class TestKeyPattern:
    """Tests for is_valid_key."""

    @pytest.mark.parametrize("key", ["a", "app.name", "App_Name-2", "x.y.z_1-2"])
    def test_valid(self, key):
        assert is_valid_key(key)

    @pytest.mark.parametrize("key", ["", "1app", ".app", "_app", "app name", "app/name", "ключ"])
    def test_invalid(self, key):
        assert not is_valid_key(key)


class TestRecord:
    """Tests for the persisted record layout."""

    def test_to_record_uses_camel_case(self, entry):
        record = entry.to_record()
        assert record == {
            "key": "feature.flags",
            "value": '{"beta": true}',
            "type": "json",
            "description": "Feature flags",
            "tags": ["features", "ui"],
            "createdAt": 1000,
            "updatedAt": 2000,
        }

    def test_optional_fields_omitted(self):
        record = ConfigEntry(key="a", value="1", type=ConfigType.NUMBER).to_record()
        assert "description" not in record
        assert "tags" not in record

    def test_from_record_round_trip(self, entry):
        assert ConfigEntry.from_record(entry.to_record()) == entry

    def test_from_record_without_optional_fields(self):
        parsed = ConfigEntry.from_record(
            {"key": "a", "value": "x", "type": "string", "createdAt": 1, "updatedAt": 2}
        )
        assert parsed.description is None
        assert parsed.tags == []

    def test_to_response_decodes_value(self, entry):
        assert entry.to_response()["value"] == {"beta": True}


class TestMerge:
    """Tests for ConfigEntry.merged."""

    def test_omitted_fields_are_kept(self, entry):
        merged = entry.merged(ConfigUpdate(value='{"beta": false}'), updated_at=3000)
        assert merged.value == '{"beta": false}'
        assert merged.description == "Feature flags"
        assert merged.tags == ["features", "ui"]

    def test_type_and_created_at_never_change(self, entry):
        merged = entry.merged(ConfigUpdate(description="x", tags=[]), updated_at=3000)
        assert merged.type is ConfigType.JSON
        assert merged.created_at == 1000
        assert merged.updated_at == 3000
        assert merged.tags == []

    def test_from_request_ignores_type(self):
        update = ConfigUpdate.from_request({"value": 5, "type": "string"})
        assert update.value == "5"
        assert update.description is None
        assert update.tags is None

    def test_from_request_keeps_tag_list(self):
        update = ConfigUpdate.from_request({"tags": ["a", 1]})
        assert update.tags == ["a", "1"]

    @pytest.mark.parametrize(
        "data",
        [{"tags": "abc"}, {"tags": {"a": 1}}, {"description": 123}, {"description": ["x"]}],
    )
    def test_from_request_rejects_malformed_metadata(self, data):
        with pytest.raises(ValidationError):
            ConfigUpdate.from_request(data)


class TestLegacyRecords:
    """Records written by older clients with loose field types."""

    def test_non_string_description_is_stringified(self):
        parsed = ConfigEntry.from_record(
            {"key": "a", "value": "x", "type": "string", "description": 42}
        )
        assert parsed.description == "42"

    def test_string_tags_become_single_tag(self):
        parsed = ConfigEntry.from_record(
            {"key": "a", "value": "x", "type": "string", "tags": "abc"}
        )
        assert parsed.tags == ["abc"]
