"""
Unit tests for the feature registration table.
"""

import json

import pytest

from authtables.core.features import (FeatureRegistry, default_registry,
                                      format_table_name,
                                      validate_feature_definition)
from authtables.exceptions import ConfigurationError


class TestFormatTableName:
    """Test table name patterns."""

    def test_prefix_and_plural(self):
        """Test both placeholders."""
        assert format_table_name("{plural}", "account") == "accounts"
        assert format_table_name("{prefix}_otp_keys", "user") == "user_otp_keys"


class TestValidateFeatureDefinition:
    """Test definition validation against the JSON schema."""

    def test_valid_definition(self):
        """Test a valid definition."""
        is_valid, error, paths = validate_feature_definition(
            {"name": "otp", "tables": {"otp_keys_table": "{prefix}_otp_keys"}}
        )
        assert is_valid
        assert error is None
        assert paths is None

    def test_accessor_must_end_with_table(self):
        """Test that accessor names must end with _table."""
        is_valid, error, _ = validate_feature_definition(
            {"name": "otp", "tables": {"otp_keys": "{prefix}_otp_keys"}}
        )
        assert not is_valid
        assert "Invalid feature definition" in error

    def test_unknown_property(self):
        """Test that unknown properties are rejected."""
        is_valid, _, paths = validate_feature_definition({"name": "otp", "color": "red"})
        assert not is_valid
        assert paths == ["<root>"]


class TestFeatureRegistry:
    """Test feature registration."""

    def test_register_defaults_template(self):
        """Test that the template defaults to <name>.sql.j2."""
        registry = FeatureRegistry()
        descriptor = registry.register("base", tables={"accounts_table": "{plural}"})
        assert descriptor.template == "base.sql.j2"
        assert "base" in registry
        assert len(registry) == 1

    def test_register_without_template(self):
        """Test registering a feature that ships no template."""
        registry = FeatureRegistry()
        descriptor = registry.register("legacy", template=None)
        assert descriptor.template is None

    def test_duplicate_registration(self):
        """Test that a feature cannot be registered twice."""
        registry = FeatureRegistry()
        registry.register("base")
        with pytest.raises(ConfigurationError):
            registry.register("base")

    def test_unknown_dependency(self):
        """Test that dependencies must be registered first."""
        registry = FeatureRegistry()
        with pytest.raises(ConfigurationError) as exc_info:
            registry.register("otp_unlock", depends_on=["otp"])
        assert exc_info.value.config_key == "depends_on"

    def test_descriptor_is_immutable(self):
        """Test that registered descriptors cannot be modified."""
        registry = FeatureRegistry()
        descriptor = registry.register("otp", tables={"otp_keys_table": "{prefix}_otp_keys"})
        with pytest.raises(TypeError):
            descriptor.tables["other_table"] = "x"

    def test_order_index(self):
        """Test registration order lookups."""
        registry = FeatureRegistry()
        registry.register("a")
        registry.register("b")
        assert registry.order_index("a") == 0
        assert registry.order_index("b") == 1
        assert registry.order_index("missing") == 2

    def test_copy_is_independent(self):
        """Test that copies do not share registrations."""
        clone = default_registry.copy()
        clone.register("custom_feature")
        assert "custom_feature" in clone
        assert "custom_feature" not in default_registry

    def test_column_names(self):
        """Test registered column names lookup."""
        registry = FeatureRegistry()
        descriptor = registry.register(
            "legacy",
            tables={"legacy_table": "{prefix}_legacy"},
            template=None,
            columns={"{prefix}_legacy": ["id", "key", "deadline"]},
        )
        assert descriptor.column_names("user_legacy", "user") == ("id", "key", "deadline")
        assert descriptor.column_names("other", "user") == ()

    def test_load_manifest(self, tmp_path):
        """Test registering features from a JSON manifest."""
        manifest = tmp_path / "features.json"
        manifest.write_text(
            json.dumps(
                {
                    "features": [
                        {
                            "name": "api_keys",
                            "tables": {"api_keys_table": "{prefix}_api_keys"},
                            "template": None,
                            "columns": {"{prefix}_api_keys": ["id", "key"]},
                        }
                    ]
                }
            ),
            encoding="utf-8",
        )
        registry = FeatureRegistry()
        descriptors = registry.load_manifest(manifest)
        assert [d.name for d in descriptors] == ["api_keys"]
        assert registry["api_keys"].template is None

    def test_load_invalid_manifest(self, tmp_path):
        """Test that an invalid manifest raises ConfigurationError."""
        manifest = tmp_path / "features.json"
        manifest.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            FeatureRegistry().load_manifest(manifest)


class TestDefaultRegistry:
    """Test the built-in features."""

    def test_base_is_first(self):
        """Test that base is registered first."""
        assert default_registry.names()[0] == "base"

    def test_every_builtin_ships_a_template(self):
        """Test that every built-in feature has a template name."""
        for descriptor in default_registry:
            assert descriptor.template == f"{descriptor.name}.sql.j2"

    def test_otp_unlock_depends_on_otp(self):
        """Test built-in dependencies."""
        assert default_registry["otp_unlock"].depends_on == ("otp",)

    def test_accessor_names_are_unique(self):
        """Test that no accessor is registered by two features."""
        accessors = [a for d in default_registry for a in d.tables]
        assert len(accessors) == len(set(accessors))
