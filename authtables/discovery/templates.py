"""
DDL template store.

Templates are Jinja2 sources rendered in a sandboxed environment against a
fixed context, so a template can only read the values handed to it:

- ``table_prefix``: singular table prefix
- ``pluralize``: the inflection helper
- ``db``: the ``Dialect`` capability object
- ``tables``: accessor -> resolved table name

Extra template directories are searched before the built-in ones, so an
application can override any shipped template by file name.

This module is part of AUTHTABLES.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from jinja2 import (FileSystemLoader, StrictUndefined, TemplateError,
                    TemplateNotFound)
from jinja2.sandbox import SandboxedEnvironment

from ..core.dialects import Dialect
from ..exceptions import TemplateRenderError
from ..utils import pluralize

logger = logging.getLogger(__name__)

BUILTIN_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def build_context(prefix: str, dialect: Dialect, tables: Mapping[str, str]) -> Dict[str, Any]:
    """Build the fixed rendering context."""
    return {
        "table_prefix": prefix,
        "pluralize": pluralize,
        "db": dialect,
        "tables": dict(tables),
    }


def split_statements(sql: str) -> List[str]:
    """
    Split rendered DDL into executable statements.

    Comment lines are dropped and a statement ends at a line ending in ``;``.
    The trailing semicolon is not part of the returned statement.
    """
    statements: List[str] = []
    buffer: List[str] = []
    for line in sql.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("--"):
            continue
        buffer.append(line.rstrip())
        if stripped.endswith(";"):
            statement = "\n".join(buffer).strip()
            statements.append(statement[:-1].rstrip())
            buffer = []
    if buffer:
        statements.append("\n".join(buffer).strip())
    return statements


class TemplateStore:
    """
    Sandboxed loader/renderer for DDL templates.

    Example:
        store = TemplateStore(["/app/db/templates"])
        sql = store.render("otp.sql.j2", build_context("account", dialect, tables))
    """

    def __init__(self, template_dirs: Optional[Iterable[Union[str, Path]]] = None) -> None:
        self.search_path: List[Path] = [Path(d) for d in (template_dirs or [])]
        self.search_path.append(BUILTIN_TEMPLATE_DIR)
        self.environment = SandboxedEnvironment(
            loader=FileSystemLoader([str(p) for p in self.search_path]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def exists(self, template_name: Optional[str]) -> bool:
        """Whether a template file can be found on the search path."""
        if not template_name:
            return False
        try:
            self.environment.loader.get_source(self.environment, template_name)
        except TemplateNotFound:
            return False
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Template {template_name} is present but unreadable: {e}")
        return True

    def source(self, template_name: str) -> str:
        """Raw (unrendered) template source."""
        try:
            source, _, _ = self.environment.loader.get_source(self.environment, template_name)
        except TemplateNotFound as e:
            raise TemplateRenderError(
                f"Template not found: {template_name}", template=template_name
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateRenderError(
                f"Template {template_name} is unreadable: {e}", template=template_name
            ) from e
        return source

    def render(
        self,
        template_name: str,
        context: Mapping[str, Any],
        feature: Optional[str] = None,
    ) -> str:
        """
        Render a template against a context.

        Raises:
            TemplateRenderError: On a missing or unreadable template, a syntax
                error, an undefined name, a sandbox violation or any error
                raised by the template code itself
        """
        try:
            template = self.environment.get_template(template_name)
            return template.render(**context)
        except TemplateNotFound as e:
            raise TemplateRenderError(
                f"Template not found: {template_name}",
                feature=feature,
                template=template_name,
            ) from e
        except TemplateError as e:
            raise TemplateRenderError(
                f"Failed to render template {template_name}: {e}",
                feature=feature,
                template=template_name,
            ) from e
        except Exception as e:
            raise TemplateRenderError(
                f"Template {template_name} raised {type(e).__name__}: {e}",
                feature=feature,
                template=template_name,
            ) from e

    def __repr__(self) -> str:
        return f"TemplateStore(search_path={[str(p) for p in self.search_path]!r})"


@lru_cache(maxsize=32)
def _cached_store(template_dirs: Tuple[str, ...]) -> TemplateStore:
    return TemplateStore(template_dirs)


def get_template_store(
    template_dirs: Optional[Iterable[Union[str, Path]]] = None,
) -> TemplateStore:
    """Shared store for a given list of extra template directories."""
    key = tuple(str(Path(d)) for d in (template_dirs or []))
    return _cached_store(key)
