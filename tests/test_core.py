"""Tests for ElasticRepository: construction, scenarios across components."""

import asyncio
import logging

import pytest

from esrepo import (
    AliasError, ConfigurationError, ElasticRepository, IndexCreationError,
    NotFoundError
)
from esrepo.query import match_all, sort_by, term, terms_aggregation

from .conftest import ALIAS_NAME, INDEX_NAME, Person
from .fakes import AsyncFakeElasticsearch, api_error


class RecordingObserver:
    def __init__(self):
        self.requests = []

    def on_request(self, operation, endpoint, body=None):
        self.requests.append((operation, endpoint))


class TestConstruction:
    def test_bootstraps_index_and_alias(self, repo, fake_es):
        assert INDEX_NAME in fake_es.indices_data
        assert fake_es.aliases == {ALIAS_NAME: {INDEX_NAME}}
        assert repo.descriptor.index_name == INDEX_NAME
        assert repo.descriptor.alias_name == ALIAS_NAME
        assert repo.descriptor.shard_count == 1
        assert repo.descriptor.replica_count == 0

    def test_alias_defaults_to_index_name(self, settings, fake_es):
        repo = ElasticRepository(settings, "solo", client=fake_es)
        assert repo.alias_name == "solo"
        assert fake_es.aliases == {}

    def test_second_repository_is_idempotent(self, repo, settings, person_schema, fake_es):
        mapping = repo.get_field_mappings()
        aliases = {k: set(v) for k, v in fake_es.aliases.items()}

        ElasticRepository(settings, INDEX_NAME, ALIAS_NAME, person_schema, client=fake_es)

        assert repo.get_field_mappings() == mapping
        assert fake_es.aliases == aliases
        assert len(fake_es.calls_to("indices.create")) == 1

    def test_requires_index_name(self, settings, fake_es):
        with pytest.raises(ConfigurationError):
            ElasticRepository(settings, "", client=fake_es)

    def test_bootstrap_failure_fails_construction(self, settings, fake_es):
        fake_es.fail("indices.create", api_error(403, "security_exception"))
        with pytest.raises(IndexCreationError):
            ElasticRepository(settings, INDEX_NAME, ALIAS_NAME, client=fake_es)

    def test_alias_failure_fails_construction(self, settings, fake_es):
        fake_es.fail("indices.put_alias", api_error(400, "invalid_alias_name_exception"))
        with pytest.raises(AliasError):
            ElasticRepository(settings, INDEX_NAME, ALIAS_NAME, client=fake_es)

    def test_owned_client_closed_on_bootstrap_failure(self, settings, fake_es, monkeypatch):
        monkeypatch.setattr("esrepo.core.SessionFactory.create", lambda s: fake_es)
        fake_es.fail("indices.create", api_error(403, "security_exception"))

        with pytest.raises(IndexCreationError):
            ElasticRepository(settings, INDEX_NAME)

        assert fake_es.closed

    def test_injected_client_not_closed(self, repo, fake_es):
        with repo:
            pass
        assert not fake_es.closed

    def test_async_with_closes_owned_async_client(self, settings, fake_es, monkeypatch):
        created = AsyncFakeElasticsearch(fake_es)
        monkeypatch.setattr("esrepo.core.SessionFactory.create_async", lambda s: created)

        async def run():
            async with ElasticRepository(settings, INDEX_NAME, client=fake_es) as repo:
                assert repo.async_client is created

        asyncio.run(run())

        assert created.closed
        assert not fake_es.closed

    def test_sync_close_warns_about_open_async_client(self, settings, fake_es, monkeypatch, caplog):
        created = AsyncFakeElasticsearch(fake_es)
        monkeypatch.setattr("esrepo.core.SessionFactory.create_async", lambda s: created)

        with caplog.at_level(logging.WARNING, logger="esrepo.core"):
            with ElasticRepository(settings, INDEX_NAME, client=fake_es) as repo:
                repo.async_client

        assert not created.closed
        assert "aclose()" in caplog.text

    def test_unused_async_client_never_created(self, settings, fake_es, monkeypatch, caplog):
        def fail(s):
            raise AssertionError("async client created")

        monkeypatch.setattr("esrepo.core.SessionFactory.create_async", fail)

        with caplog.at_level(logging.WARNING, logger="esrepo.core"):
            with ElasticRepository(settings, INDEX_NAME, client=fake_es):
                pass

        assert "aclose()" not in caplog.text


class TestScenarios:
    def test_people_sorted_by_age_descending(self, repo, people):
        results = repo.search(match_all(), [sort_by("age", "desc")], page_size=10, page_index=0)

        assert [(p.name, p.age) for p in results] == [
            ("Bob Smith", 35),
            ("Jane Doe", 30),
            ("Alice Johnson", 28),
            ("John Doe", 25),
            ("Charlie Brown", 22),
        ]

    def test_keyword_filter_with_ascending_sort(self, repo, people):
        results = repo.search(term("city.keyword", "New York"), [sort_by("age")], page_size=1)

        assert [p.name for p in results] == ["John Doe", "Bob Smith"]
        assert all(p.city == "New York" for p in results)

    def test_city_aggregation(self, repo, people):
        results = repo.search(
            match_all(),
            [sort_by("age", "desc")],
            aggregations={"city.keyword": terms_aggregation("city.keyword")},
            page_size=2,
        )

        buckets = results.aggregations["city.keyword"]["buckets"]
        assert {b["key"]: b["doc_count"] for b in buckets} == {
            "New York": 2, "Los Angeles": 2, "Chicago": 1
        }
        assert len(results) == 5

    def test_search_restricts_source_to_declared_fields(self, repo, fake_es, people):
        repo.search(match_all(), page_size=10)
        assert fake_es.calls_to("search")[0]["source_includes"] == ["name", "age", "city", "email"]

    def test_alias_indirection(self, repo, settings, person_schema, fake_es, people):
        repo.create_alias("a2", INDEX_NAME)
        through_alias = ElasticRepository(settings, "a2", schema=person_schema, client=fake_es)

        results = through_alias.search(match_all(), [sort_by("age")], page_size=2)

        assert [p.name for p in results][0] == "Charlie Brown"
        assert len(results) == 5
        assert len(fake_es.calls_to("indices.create")) == 1

    def test_delete_index_cleans_up(self, repo, fake_es, people):
        repo.delete_index(INDEX_NAME)

        assert fake_es.indices_data == {}
        assert fake_es.aliases == {}
        with pytest.raises(NotFoundError):
            repo.get_document_by_id(people["John Doe"])

    def test_refresh(self, repo, fake_es):
        repo.refresh()
        assert fake_es.calls_to("indices.refresh") == [{"index": INDEX_NAME}]


def test_search_async(settings, person_schema, fake_es):
    async_client = AsyncFakeElasticsearch(fake_es)
    repo = ElasticRepository(
        settings, INDEX_NAME, ALIAS_NAME, person_schema,
        client=fake_es, async_client=async_client
    )
    repo.index_document(Person("John Doe", 25, "New York"))
    repo.index_document(Person("Jane Doe", 30, "Los Angeles"))

    async def run():
        results = await repo.search_async(match_all(), [sort_by("age", "desc")], page_size=1)
        await repo.aclose()
        return results

    results = asyncio.run(run())

    assert [p.name for p in results] == ["Jane Doe", "John Doe"]
    assert fake_es.scrolls == {}
    assert not async_client.closed


def test_observer_sees_every_request(settings, person_schema, fake_es):
    observer = RecordingObserver()
    repo = ElasticRepository(
        settings, INDEX_NAME, ALIAS_NAME, person_schema, client=fake_es, observer=observer
    )
    repo.index_document(Person("John Doe", 25, "New York"))
    repo.search(match_all(), page_size=10)

    operations = [op for op, _ in observer.requests]
    assert operations == [
        "index exists", "create index", "alias exists", "create alias",
        "index document", "search", "scroll", "clear scroll",
    ]
    assert observer.requests[4] == ("index document", f"POST /{INDEX_NAME}/_doc")
