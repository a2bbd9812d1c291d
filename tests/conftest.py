"""Shared fixtures: a fake cluster, settings and a Person document type."""

from dataclasses import dataclass
from typing import Optional

import pytest

from esrepo import DocumentSchema, ElasticRepository, ElasticSearchSettings

from .fakes import FakeElasticsearch

INDEX_NAME = "test_index"
ALIAS_NAME = "test_alias"

PEOPLE = [
    ("John Doe", 25, "New York"),
    ("Jane Doe", 30, "Los Angeles"),
    ("Bob Smith", 35, "New York"),
    ("Alice Johnson", 28, "Chicago"),
    ("Charlie Brown", 22, "Los Angeles"),
]


@dataclass
class Person:
    name: str
    age: int
    city: str
    email: Optional[str] = None


@pytest.fixture
def fake_es():
    return FakeElasticsearch()


@pytest.fixture
def settings():
    return ElasticSearchSettings(
        url="https://localhost:9200",
        username="elastic",
        password="changeme",
        index_name=INDEX_NAME,
    )


@pytest.fixture
def person_schema():
    return DocumentSchema.from_dataclass(Person, keyword_fields=["name", "city"])


@pytest.fixture
def repo(settings, person_schema, fake_es):
    return ElasticRepository(
        settings, INDEX_NAME, ALIAS_NAME, person_schema, client=fake_es
    )


@pytest.fixture
def people(repo):
    """Index the five sample people; returns {name: id}."""
    return {
        name: repo.index_document(Person(name, age, city))
        for name, age, city in PEOPLE
    }
