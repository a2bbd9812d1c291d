"""Tests for DocumentRepository (through ElasticRepository)."""

import elasticsearch
import pytest

from esrepo import (
    ClusterConnectionError, DocumentRepository, NotFoundError,
    ServerResponseError
)

from .conftest import INDEX_NAME, Person
from .fakes import api_error


class TestIndexDocument:
    def test_round_trip(self, repo):
        person = Person("John Doe", 25, "New York", email="john@example.com")
        doc_id = repo.index_document(person)

        assert repo.get_document_by_id(doc_id) == person

    def test_engine_generates_ids(self, repo, fake_es):
        first = repo.index_document(Person("A", 1, "X"))
        second = repo.index_document(Person("A", 1, "X"))

        assert first != second
        call = fake_es.calls_to("index")[0]
        assert "id" not in call
        assert call["index"] == INDEX_NAME

    def test_waits_for_refresh(self, repo, fake_es):
        repo.index_document(Person("A", 1, "X"))
        assert fake_es.calls_to("index")[0]["refresh"] == "wait_for"

    def test_rejected_write(self, repo, fake_es):
        fake_es.fail("index", api_error(400, "mapper_parsing_exception"))
        with pytest.raises(ServerResponseError) as info:
            repo.index_document(Person("A", 1, "X"))
        assert info.value.endpoint == f"POST /{INDEX_NAME}/_doc"

    def test_connection_failure(self, repo, fake_es):
        fake_es.fail("index", elasticsearch.ConnectionError("connection refused"))
        with pytest.raises(ClusterConnectionError):
            repo.index_document(Person("A", 1, "X"))


class TestGetDocument:
    def test_reads_concrete_index(self, repo, fake_es, people):
        repo.get_document_by_id(people["Jane Doe"])
        assert fake_es.calls_to("get")[-1]["index"] == INDEX_NAME

    def test_missing(self, repo):
        with pytest.raises(NotFoundError):
            repo.get_document_by_id("nope")


class TestUpdateDocument:
    def test_merges_fields(self, repo, people):
        doc_id = people["John Doe"]
        repo.update_document(doc_id, {"age": 26})

        assert repo.get_document_by_id(doc_id) == Person("John Doe", 26, "New York")

    def test_missing(self, repo):
        with pytest.raises(NotFoundError):
            repo.update_document("nope", {"age": 1})

    def test_rejected(self, repo, fake_es, people):
        fake_es.fail("update", api_error(400, "illegal_argument_exception"))
        with pytest.raises(ServerResponseError):
            repo.update_document(people["John Doe"], {"age": "old"})


class TestUpsertDocument:
    def test_creates_fresh_id(self, repo):
        person = Person("New Person", 40, "Boston")
        repo.upsert_document("fresh-id", person)

        assert repo.get_document_by_id("fresh-id") == person

    def test_updates_only_present_fields(self, repo, people):
        doc_id = people["Alice Johnson"]
        repo.upsert_document(doc_id, {"city": "Denver"})

        assert repo.get_document_by_id(doc_id) == Person("Alice Johnson", 28, "Denver")

    def test_never_not_found(self, repo, fake_es):
        fake_es.fail("update", api_error(404, "index_not_found_exception"))
        with pytest.raises(ServerResponseError) as info:
            repo.upsert_document("x", {"age": 1})
        assert not isinstance(info.value, NotFoundError)


class TestDeleteDocument:
    def test_then_get_fails(self, repo, people):
        doc_id = people["Bob Smith"]
        repo.delete_document(doc_id)

        with pytest.raises(NotFoundError):
            repo.get_document_by_id(doc_id)

    def test_missing_id_raises(self, repo):
        with pytest.raises(NotFoundError):
            repo.delete_document("never-indexed")


def test_plain_dict_documents(fake_es):
    fake_es.indices.create(index="loose")
    documents = DocumentRepository(fake_es, "loose", refresh="false")

    doc_id = documents.index_document({"title": "hello", "tags": ["a", "b"], "skip": None})

    assert documents.get_document_by_id(doc_id) == {"title": "hello", "tags": ["a", "b"]}
    assert fake_es.calls_to("index")[0]["refresh"] == "false"
