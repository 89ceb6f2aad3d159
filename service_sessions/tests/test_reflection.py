"""
Unit tests for offline model generation.
"""

import pytest
from pathlib import Path
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.types import Float

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from scripts.reflect_models import reflect
from service_sessions.app.persistence import models
from service_sessions.app.persistence.reflection import (
    TableSpec, attribute_name, generate_models, python_type
)
from shared.errors import ConfigurationError

# A cut down ISPyB schema, with columns and keys the service does not use
ISPYB_DDL = [
    """
    CREATE TABLE Person (
        personId INTEGER PRIMARY KEY,
        login VARCHAR(45)
    )
    """,
    """
    CREATE TABLE Proposal (
        proposalId INTEGER PRIMARY KEY,
        personId INTEGER REFERENCES Person(personId),
        title VARCHAR(200),
        proposalCode VARCHAR(45),
        proposalNumber VARCHAR(45),
        bltimeStamp DATETIME
    )
    """,
    """
    CREATE TABLE BLSession (
        sessionId INTEGER PRIMARY KEY,
        beamLineSetupId INTEGER,
        proposalId INTEGER,
        startDate DATETIME,
        endDate DATETIME,
        beamLineName VARCHAR(45),
        visit_number INTEGER,
        comments VARCHAR(2000),
        FOREIGN KEY (proposalId) REFERENCES Proposal(proposalId)
    )
    """,
]


async def _create_ispyb(engine, statements=ISPYB_DDL):
    async with engine.begin() as connection:
        for statement in statements:
            await connection.execute(text(statement))


class TestReflection:
    """Test cases for model generation."""

    @pytest.mark.asyncio
    async def test_generated_models_match_checked_in_module(self):
        """Test the checked-in models are what the generator produces."""
        engine = create_async_engine("sqlite+aiosqlite://")
        try:
            await _create_ispyb(engine)
            source = await generate_models(engine)
        finally:
            await engine.dispose()

        assert source == Path(models.__file__).read_text()

    @pytest.mark.asyncio
    async def test_unused_columns_are_left_out(self):
        """Test only allow-listed columns and keys are rendered."""
        engine = create_async_engine("sqlite+aiosqlite://")
        try:
            await _create_ispyb(engine)
            source = await generate_models(engine)
        finally:
            await engine.dispose()

        assert "comments" not in source
        assert "beamLineName" not in source
        assert "Person" not in source
        assert "title" not in source

    @pytest.mark.asyncio
    async def test_missing_table(self):
        """Test a schema without the expected tables is rejected."""
        engine = create_async_engine("sqlite+aiosqlite://")
        try:
            await _create_ispyb(engine, ISPYB_DDL[:2])
            with pytest.raises(ConfigurationError) as exc_info:
                await generate_models(engine)
        finally:
            await engine.dispose()

        assert exc_info.value.details == {"table": "BLSession"}

    @pytest.mark.asyncio
    async def test_missing_column(self):
        """Test a schema lacking an expected column is rejected."""
        engine = create_async_engine("sqlite+aiosqlite://")
        try:
            await _create_ispyb(engine, [
                ISPYB_DDL[0],
                ISPYB_DDL[1],
                "CREATE TABLE BLSession (sessionId INTEGER PRIMARY KEY, proposalId INTEGER)",
            ])
            with pytest.raises(ConfigurationError) as exc_info:
                await generate_models(engine)
        finally:
            await engine.dispose()

        assert exc_info.value.details["columns"] == ["startDate", "endDate", "visit_number"]

    @pytest.mark.asyncio
    async def test_reflect_script(self, tmp_path):
        """Test the script entry point reflects a database by URL."""
        database_url = f"sqlite:///{tmp_path / 'ispyb.db'}"
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ispyb.db'}")
        try:
            await _create_ispyb(engine)
        finally:
            await engine.dispose()

        source = await reflect(database_url)

        assert "class BLSession(Base):" in source
        assert 'visit_number: Mapped[Optional[int]] = mapped_column("visit_number", Integer, nullable=True)' in source


class TestNaming:
    """Test cases for generator helpers."""

    @pytest.mark.parametrize("column,attribute", [
        ("proposalId", "proposal_id"),
        ("startDate", "start_date"),
        ("visit_number", "visit_number"),
        ("sessionId", "session_id"),
    ])
    def test_attribute_name(self, column, attribute):
        """Test column names become snake case attributes."""
        assert attribute_name(column) == attribute

    def test_unsupported_type(self):
        """Test unknown column types are refused."""
        with pytest.raises(ConfigurationError):
            python_type(Float())

    def test_table_spec_is_immutable(self):
        """Test table specs cannot be changed after creation."""
        spec = TableSpec("Proposal", ("proposalId",))
        with pytest.raises(AttributeError):
            spec.name = "Other"
