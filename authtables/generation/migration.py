"""
Feature migration generator.

Renders the DDL templates of a chosen set of features, in the given order,
for a table prefix and dialect. The output is either migration text or DDL
executed on a SQLAlchemy engine.

This module is part of AUTHTABLES.
"""

import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError

from ..constants import DEFAULT_TABLE_PREFIX
from ..core.dialects import Dialect, dialect_for
from ..core.features import FeatureRegistry
from ..discovery.template_inspector import TemplateInspector
from ..discovery.templates import split_statements
from ..exceptions import GenerationError

logger = logging.getLogger(__name__)

# (feature, template, statement)
FeatureStatement = Tuple[str, Optional[str], str]


class MigrationGenerator:
    """
    Renders feature templates into DDL.

    Example:
        generator = MigrationGenerator(["base", "otp"], prefix="account", dialect="sqlite")
        print(generator.generate())
        generator.execute_create_tables(engine)
    """

    def __init__(
        self,
        features: Iterable[str],
        prefix: str = DEFAULT_TABLE_PREFIX,
        dialect: Union[str, Dialect, None] = None,
        registry: Optional[FeatureRegistry] = None,
        template_dirs: Optional[Iterable[Union[str, Path]]] = None,
        table_names: Optional[Mapping[str, str]] = None,
        inspector: Optional[TemplateInspector] = None,
    ) -> None:
        """
        Initialize the generator.

        Args:
            features: Features to render, in rendering order
            prefix: Singular table prefix
            dialect: Target dialect (default: postgres)
            registry: Feature registry (defaults to the built-in registry)
            template_dirs: Extra template directories searched first
            table_names: Accessor -> table name overrides
            inspector: Preconfigured template inspector; replaces
                ``registry``, ``template_dirs`` and ``table_names``

        Raises:
            ValueError: If no features are given, or a feature is unknown or
                ships no template
        """
        self.features = list(features)
        if not self.features:
            raise ValueError("At least one feature is required to generate a migration")

        self.prefix = prefix
        self.dialect = dialect_for(dialect)
        self.inspector = inspector or TemplateInspector(registry, template_dirs, table_names)

        for feature in self.features:
            if feature not in self.inspector.registry:
                raise ValueError(f"Unknown feature: {feature}")
            if not self.inspector.template_exists(feature):
                raise ValueError(f"No migration template for feature: {feature}")

    def template_name(self, feature: str) -> Optional[str]:
        return self.inspector.template_name(feature)

    def render_feature(self, feature: str) -> str:
        """Rendered DDL of one feature (raises ``TemplateRenderError``)."""
        return self.inspector.render(feature, self.prefix, self.dialect)

    def rendered_features(self) -> List[Tuple[str, str]]:
        """``(feature, rendered_sql)`` for every feature, in order."""
        return [(feature, self.render_feature(feature)) for feature in self.features]

    def generate(self) -> str:
        """All feature templates rendered and joined, each under a feature header."""
        blocks = [
            f"-- Feature: {feature}\n{sql.strip()}"
            for feature, sql in self.rendered_features()
        ]
        return "\n\n".join(blocks) + "\n"

    def feature_statements(self) -> List[FeatureStatement]:
        """Executable statements tagged with their feature and template."""
        statements: List[FeatureStatement] = []
        for feature, sql in self.rendered_features():
            template = self.template_name(feature)
            statements.extend((feature, template, s) for s in split_statements(sql))
        return statements

    def statements(self) -> List[str]:
        """Executable statements, without trailing semicolons."""
        return [statement for _, _, statement in self.feature_statements()]

    def migration_name(self) -> str:
        """Migration name such as ``create_otp`` or ``create_admin_base_otp``."""
        parts = ["create"]
        if self.prefix != DEFAULT_TABLE_PREFIX:
            parts.append(self.prefix)
        parts.extend(self.features)
        return "_".join(parts)

    def execute_create_tables(self, engine: Any) -> int:
        """
        Execute every statement in one transaction.

        Returns:
            Number of statements executed

        Raises:
            GenerationError: If a statement fails (names feature and template)
                or the connection or transaction itself fails
        """
        statements = self.feature_statements()
        try:
            with engine.begin() as connection:
                for feature, template, statement in statements:
                    try:
                        connection.exec_driver_sql(statement)
                    except SQLAlchemyError as e:
                        raise GenerationError(
                            f"Failed to execute DDL for feature '{feature}': {e}",
                            feature=feature,
                            template=template,
                            statement=statement,
                        ) from e
        except SQLAlchemyError as e:
            # Connect, commit or rollback failure outside any single statement
            raise GenerationError(
                f"DDL transaction failed for features {', '.join(self.features)}: {e}",
                feature=", ".join(self.features),
                template=", ".join(self.template_name(f) or "" for f in self.features),
            ) from e
        logger.info(
            f"Executed {len(statements)} DDL statement(s) for features: "
            f"{', '.join(self.features)}"
        )
        return len(statements)
