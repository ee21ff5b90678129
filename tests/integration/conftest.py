"""Pytest configuration for integration tests.

This module provides fixtures for integration testing with a real Neo4j
database instance using testcontainers.
"""

from __future__ import annotations

import pytest
from typing import Any, Generator

from neo4j import GraphDatabase


@pytest.fixture(scope="session")
def neo4j_container() -> Generator[Any, None, None]:
    """Start a Neo4j container for the test session.

    Yields:
        Neo4jContainer instance with connection details
    """
    neo4j_containers = pytest.importorskip(
        "testcontainers.neo4j",
        reason="testcontainers not installed (pip install netlens[integration])",
    )
    container = neo4j_containers.Neo4jContainer("neo4j:5.15")
    container.with_env("NEO4J_AUTH", "neo4j/testpassword")

    try:
        container.start()
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="session")
def neo4j_driver(neo4j_container: Any) -> Generator[Any, None, None]:
    """Create a Neo4j driver connected to the test container."""
    driver = GraphDatabase.driver(
        neo4j_container.get_connection_url(),
        auth=("neo4j", "testpassword"),
    )

    try:
        # Wait for database to be ready
        with driver.session() as session:
            session.run("RETURN 1")
        yield driver
    finally:
        driver.close()


@pytest.fixture
def clean_database(neo4j_driver: Any) -> Generator[Any, None, None]:
    """Remove all nodes and relationships before and after each test."""
    with neo4j_driver.session() as session:
        session.run("MATCH (n) DETACH DELETE n")

    yield neo4j_driver

    with neo4j_driver.session() as session:
        session.run("MATCH (n) DETACH DELETE n")
