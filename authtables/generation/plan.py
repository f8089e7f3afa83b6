"""
Migration plans and table ordering.

Tables are created in tiers: lookup/status tables, the primary identity
table, 1:1 auxiliary tables (password hashes), then every other table.
Within a tier the order is stable and foreign-key topological. The drop
order is the exact reverse of the create order.

This module is part of AUTHTABLES.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Set

from ..core.models import TableDescriptor
from ..exceptions import GenerationError

logger = logging.getLogger(__name__)

TIER_LOOKUP = 0
TIER_PRIMARY = 1
TIER_AUXILIARY = 2
TIER_FEATURE = 3


def table_tier(table_name: str, primary_table: str, auxiliary_tables: Iterable[str] = ()) -> int:
    """Creation tier of a table."""
    if table_name.endswith("_statuses"):
        return TIER_LOOKUP
    if table_name == primary_table:
        return TIER_PRIMARY
    if table_name in set(auxiliary_tables):
        return TIER_AUXILIARY
    return TIER_FEATURE


def _topological(tables: List[TableDescriptor]) -> List[TableDescriptor]:
    """Stable FK-topological order; a cycle keeps the remaining input order."""
    names = {t.table_name for t in tables}
    placed: Set[str] = set()
    ordered: List[TableDescriptor] = []
    remaining = list(tables)
    while remaining:
        for table in remaining:
            deps = [d for d in table.referenced_tables() if d in names]
            if all(d in placed for d in deps):
                break
        else:
            logger.warning(
                f"Foreign key cycle between tables: {', '.join(t.table_name for t in remaining)}"
            )
            ordered.extend(remaining)
            break
        remaining.remove(table)
        placed.add(table.table_name)
        ordered.append(table)
    return ordered


def order_tables_for_create(
    tables: Iterable[TableDescriptor],
    primary_table: str,
    auxiliary_tables: Iterable[str] = (),
) -> List[TableDescriptor]:
    """Create order: by tier, stable FK-topological within a tier."""
    auxiliary = list(auxiliary_tables)
    tiers: Dict[int, List[TableDescriptor]] = {}
    for table in tables:
        tiers.setdefault(table_tier(table.table_name, primary_table, auxiliary), []).append(table)

    ordered: List[TableDescriptor] = []
    for tier in sorted(tiers):
        ordered.extend(_topological(tiers[tier]))
    return ordered


def order_tables_for_drop(
    tables: Iterable[TableDescriptor],
    primary_table: str,
    auxiliary_tables: Iterable[str] = (),
) -> List[TableDescriptor]:
    """Drop order: the reverse of the create order."""
    return list(reversed(order_tables_for_create(tables, primary_table, auxiliary_tables)))


@dataclass
class MigrationPlan:
    """Ordered creation sequence plus the drop sequence."""

    create: List[TableDescriptor] = field(default_factory=list)
    drop: List[TableDescriptor] = field(default_factory=list)

    @classmethod
    def from_tables(
        cls,
        tables: Iterable[TableDescriptor],
        primary_table: str,
        auxiliary_tables: Iterable[str] = (),
    ) -> "MigrationPlan":
        create = order_tables_for_create(tables, primary_table, auxiliary_tables)
        return cls(create=create, drop=list(reversed(create)))

    def create_order(self) -> List[str]:
        return [t.table_name for t in self.create]

    def drop_order(self) -> List[str]:
        return [t.table_name for t in self.drop]

    def table(self, table_name: str) -> TableDescriptor:
        for table in self.create:
            if table.table_name == table_name:
                return table
        raise KeyError(table_name)

    def validate(self) -> None:
        """
        Check the ordering invariants.

        Raises:
            GenerationError: On duplicate table names, or a table placed
                before a table it references (after it, for drops)
        """
        for label, order in (("create", self.create_order()), ("drop", self.drop_order())):
            if len(order) != len(set(order)):
                duplicates = sorted({n for n in order if order.count(n) > 1})
                raise GenerationError(
                    f"Duplicate tables in {label} plan: {', '.join(duplicates)}",
                    context={"plan": label},
                )

        create_position = {name: i for i, name in enumerate(self.create_order())}
        drop_position = {name: i for i, name in enumerate(self.drop_order())}
        for table in self.create:
            for referenced in table.referenced_tables():
                if referenced not in create_position:
                    continue
                if create_position[referenced] >= create_position[table.table_name]:
                    raise GenerationError(
                        f"Table '{table.table_name}' is created before '{referenced}' "
                        f"which it references",
                        context={"plan": "create", "table": table.table_name},
                    )
                if drop_position.get(table.table_name, -1) >= drop_position.get(referenced, -1):
                    raise GenerationError(
                        f"Table '{referenced}' is dropped before '{table.table_name}' "
                        f"which references it",
                        context={"plan": "drop", "table": table.table_name},
                    )

    def to_dict(self) -> Dict[str, Any]:
        return {"create": self.create_order(), "drop": self.drop_order()}

    def __len__(self) -> int:
        return len(self.create)
