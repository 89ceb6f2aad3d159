"""
Offline generation of the ISPyB table models.

ISPyB's schema is owned elsewhere. Rather than discovering it at startup,
the declarative models in ``models.py`` are rendered once from a live
database by ``scripts/reflect_models.py``, keeping only the tables and
columns listed in :data:`TABLE_SPECS` and foreign keys between them.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.types import Date, DateTime, Integer, String, Text, TypeEngine

from shared.errors import ConfigurationError
from shared.logging import get_logger

logger = get_logger("sessions.persistence.reflection")


@dataclass(frozen=True)
class TableSpec:
    name: str
    columns: Tuple[str, ...]


@dataclass(frozen=True)
class RelationshipSpec:
    """A many-to-one foreign key, named from both ends."""

    child: str
    parent: str
    child_attribute: str
    parent_attribute: str


TABLE_SPECS: Tuple[TableSpec, ...] = (
    TableSpec("Proposal", ("proposalId", "proposalCode", "proposalNumber")),
    TableSpec("BLSession", ("sessionId", "proposalId", "startDate", "endDate", "visit_number")),
)

RELATIONSHIPS: Tuple[RelationshipSpec, ...] = (
    RelationshipSpec("BLSession", "Proposal", "proposal", "sessions"),
)

HEADER = '''"""ISPyB table models.

Generated by scripts/reflect_models.py from a live ISPyB schema, restricted
to the columns the service exposes. Regenerate rather than edit by hand.
"""
'''


@dataclass
class ReflectedColumn:
    name: str
    type: TypeEngine
    nullable: bool
    primary_key: bool = False
    foreign_key: Optional[str] = None


@dataclass
class ReflectedTable:
    name: str
    columns: List[ReflectedColumn] = field(default_factory=list)


def attribute_name(column: str) -> str:
    """``proposalId`` -> ``proposal_id``."""
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", column).lower()


def python_type(column_type: TypeEngine) -> Tuple[str, str]:
    """The Python annotation and SQLAlchemy type expression for a column."""
    if isinstance(column_type, Integer):
        return "int", "Integer"
    if isinstance(column_type, DateTime):
        return "datetime", "DateTime"
    if isinstance(column_type, Date):
        return "date", "Date"
    if isinstance(column_type, Text):
        return "str", "Text"
    if isinstance(column_type, String):
        if column_type.length:
            return "str", f"String({column_type.length})"
        return "str", "String"
    raise ConfigurationError(
        "Unsupported column type",
        details={"type": type(column_type).__name__}
    )


def reflect_tables(connection, specs: Tuple[TableSpec, ...] = TABLE_SPECS) -> List[ReflectedTable]:
    """Read the allow-listed tables through a synchronous connection."""
    inspector = inspect(connection)
    existing = set(inspector.get_table_names())
    listed = {spec.name for spec in specs}
    tables = []

    for spec in specs:
        if spec.name not in existing:
            raise ConfigurationError("Table missing from database", details={"table": spec.name})

        discovered: Dict[str, Dict[str, Any]] = {
            column["name"]: column for column in inspector.get_columns(spec.name)
        }
        missing = [name for name in spec.columns if name not in discovered]
        if missing:
            raise ConfigurationError(
                "Columns missing from database",
                details={"table": spec.name, "columns": missing}
            )

        primary_key = set(inspector.get_pk_constraint(spec.name).get("constrained_columns") or [])
        foreign_keys: Dict[str, str] = {}
        for foreign_key in inspector.get_foreign_keys(spec.name):
            if foreign_key["referred_table"] not in listed or len(foreign_key["constrained_columns"]) != 1:
                continue
            foreign_keys[foreign_key["constrained_columns"][0]] = (
                f'{foreign_key["referred_table"]}.{foreign_key["referred_columns"][0]}'
            )

        table = ReflectedTable(spec.name)
        for name in spec.columns:
            column = discovered[name]
            table.columns.append(ReflectedColumn(
                name=name,
                type=column["type"],
                nullable=bool(column.get("nullable", True)),
                primary_key=name in primary_key,
                foreign_key=foreign_keys.get(name),
            ))
        tables.append(table)
        logger.info("Table reflected", table=spec.name, columns=len(table.columns))

    return tables


def _relationships_for(table: ReflectedTable, tables: List[ReflectedTable]) -> List[str]:
    linked = {
        (reflected.name, column.foreign_key.split(".")[0])
        for reflected in tables
        for column in reflected.columns
        if column.foreign_key
    }
    lines = []
    for relationship in RELATIONSHIPS:
        if (relationship.child, relationship.parent) not in linked:
            continue
        if relationship.parent == table.name:
            lines.append(
                f'    {relationship.parent_attribute}: Mapped[List["{relationship.child}"]]'
                f' = relationship(back_populates="{relationship.child_attribute}")'
            )
        if relationship.child == table.name:
            lines.append(
                f'    {relationship.child_attribute}: Mapped[Optional["{relationship.parent}"]]'
                f' = relationship(back_populates="{relationship.parent_attribute}")'
            )
    return lines


def render_models(tables: List[ReflectedTable]) -> str:
    """Render the declarative models module for ``tables``."""
    python_imports = set()
    typing_imports = set()
    sqlalchemy_imports = set()
    bodies = []

    for table in tables:
        lines = [f"class {table.name}(Base):", f'    __tablename__ = "{table.name}"', ""]
        for column in table.columns:
            annotation, type_expression = python_type(column.type)
            if annotation in ("datetime", "date"):
                python_imports.add(annotation)
            sqlalchemy_imports.add(type_expression.split("(")[0])

            arguments = [f'"{column.name}"', type_expression]
            if column.foreign_key:
                sqlalchemy_imports.add("ForeignKey")
                arguments.append(f'ForeignKey("{column.foreign_key}")')
            if column.primary_key:
                arguments.append("primary_key=True")
            elif column.nullable:
                typing_imports.add("Optional")
                annotation = f"Optional[{annotation}]"
                arguments.append("nullable=True")
            else:
                arguments.append("nullable=False")

            lines.append(
                f"    {attribute_name(column.name)}: Mapped[{annotation}]"
                f" = mapped_column({', '.join(arguments)})"
            )

        relationships = _relationships_for(table, tables)
        if relationships:
            typing_imports.update(
                name for name in ("List", "Optional")
                if any(f"Mapped[{name}[" in line for line in relationships)
            )
            lines.append("")
            lines.extend(relationships)
        bodies.append("\n".join(lines))

    imports = []
    if python_imports:
        imports.append(f"from datetime import {', '.join(sorted(python_imports))}")
    if typing_imports:
        imports.append(f"from typing import {', '.join(sorted(typing_imports))}")
    if imports:
        imports.append("")
    imports.append(f"from sqlalchemy import {', '.join(sorted(sqlalchemy_imports))}")
    orm_imports = ["DeclarativeBase", "Mapped", "mapped_column"]
    if any("relationship(" in body for body in bodies):
        orm_imports.append("relationship")
    imports.append(f"from sqlalchemy.orm import {', '.join(orm_imports)}")

    base = "class Base(DeclarativeBase):\n    pass"
    return "\n".join([HEADER, "\n".join(imports), "", "", base, "", "", "\n\n\n".join(bodies)]) + "\n"


async def generate_models(engine: AsyncEngine) -> str:
    """Reflect the allow-listed tables from ``engine`` and render the models."""
    async with engine.connect() as connection:
        tables = await connection.run_sync(reflect_tables)
    return render_models(tables)
