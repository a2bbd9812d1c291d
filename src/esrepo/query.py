"""
Request fragment builders.

Queries, sorts and aggregations are plain dicts in the Elasticsearch query
DSL; the repository attaches them to requests untouched. These helpers only
save typing:

    query = bool_query(must=[match("name", "doe")], filter=[term("city.keyword", "Chicago")])
    sort = [sort_by("age", "desc")]
    aggs = {"cities": terms_aggregation("city.keyword")}
"""

from typing import Any, Dict, List, Optional

Query = Dict[str, Any]
Sort = List[Dict[str, Any]]
Aggregations = Dict[str, Any]


def match_all() -> Query:
    return {"match_all": {}}


def term(field: str, value: Any) -> Query:
    return {"term": {field: value}}


def match(field: str, text: str) -> Query:
    return {"match": {field: text}}


def range_query(field: str, **bounds: Any) -> Query:
    """``range_query("age", gte=18, lt=65)``"""
    return {"range": {field: bounds}}


def bool_query(
    must: Optional[List[Query]] = None,
    filter: Optional[List[Query]] = None,
    should: Optional[List[Query]] = None,
    must_not: Optional[List[Query]] = None
) -> Query:
    clauses = {
        "must": must,
        "filter": filter,
        "should": should,
        "must_not": must_not,
    }
    return {"bool": {k: v for k, v in clauses.items() if v}}


def sort_by(field: str, order: str = "asc") -> Dict[str, Any]:
    if order not in ("asc", "desc"):
        raise ValueError(f"order must be 'asc' or 'desc', got {order!r}")
    return {field: {"order": order}}


def terms_aggregation(field: str, size: int = 10) -> Dict[str, Any]:
    return {"terms": {"field": field, "size": size}}
