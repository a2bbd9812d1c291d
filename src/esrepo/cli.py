"""
esrepo CLI — Command-Line Interface
===================================

Usage:
    esrepo create people_v1 --alias people --shards 3
    esrepo alias people people_v2
    esrepo delete people_v1
    esrepo get people_v1 <id>
    esrepo dump people --sort age:desc --page-size 500 > people.jsonl

Connection options default to the ``ES_*`` environment variables.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .aliases import AliasManager
from .core import ElasticRepository
from .documents import DocumentRepository
from .exceptions import ESRepoError
from .query import match_all, sort_by
from .scroll import ScrollPaginator
from .session import SessionFactory
from .settings import ElasticSearchSettings

logger = logging.getLogger(__name__)


def get_settings(args) -> ElasticSearchSettings:
    """Merge command-line options over the ``ES_*`` environment."""
    env = ElasticSearchSettings.from_env()
    return ElasticSearchSettings(
        url=args.url or env.url,
        username=args.username if args.username is not None else env.username,
        password=args.password if args.password is not None else env.password,
        index_name=env.index_name,
        single_node=args.single_node or env.single_node,
        number_of_shards=(
            args.shards if getattr(args, "shards", None) is not None
            else env.number_of_shards
        ),
        number_of_replicas=(
            args.replicas if getattr(args, "replicas", None) is not None
            else env.number_of_replicas
        ),
        request_timeout=env.request_timeout,
        verify_certs=env.verify_certs,
        ca_certs=args.ca_certs or env.ca_certs,
        insecure_skip_tls_verify=args.insecure or env.insecure_skip_tls_verify,
        refresh=env.refresh,
    ).validate()


def open_client(args):
    """Client built from the merged settings."""
    return SessionFactory.create(get_settings(args))


def cmd_create(args):
    """Create an index (and alias) if missing."""
    settings = get_settings(args)
    client = SessionFactory.create(settings)
    try:
        repo = ElasticRepository(settings, args.index, args.alias, client=client)
        print(f"Index ready: {repo.index_name}")
        if repo.alias_name != repo.index_name:
            print(f"  Alias: {repo.alias_name}")
        print(f"  Shards: {repo.descriptor.shard_count}")
        print(f"  Replicas: {repo.descriptor.replica_count}")
    finally:
        client.close()


def cmd_alias(args):
    """Bind an alias to an index."""
    client = open_client(args)
    try:
        AliasManager(client).create_alias(args.alias, args.index)
        print(f"Alias {args.alias} -> {args.index}")
    finally:
        client.close()


def cmd_delete(args):
    """Delete an index."""
    if not args.force:
        confirm = input(f"Delete index '{args.index}'? [y/N] ")
        if confirm.lower() != 'y':
            print("Aborted.")
            return

    client = open_client(args)
    try:
        AliasManager(client).delete_index(args.index)
        print(f"Deleted index: {args.index}")
    finally:
        client.close()


def cmd_get(args):
    """Print one document as JSON."""
    client = open_client(args)
    try:
        doc = DocumentRepository(client, args.index).get_document_by_id(args.id)
        print(json.dumps(doc, ensure_ascii=False, indent=2))
    finally:
        client.close()


def parse_sort(spec: Optional[str]):
    if not spec:
        return None
    sort = []
    for part in spec.split(","):
        field, _, order = part.partition(":")
        sort.append(sort_by(field.strip(), order.strip() or "asc"))
    return sort


def cmd_dump(args):
    """Write every document of an index as JSON lines."""
    client = open_client(args)
    try:
        results = ScrollPaginator(client, args.index).search(
            match_all(),
            sort=parse_sort(args.sort),
            page_size=args.page_size,
            page_index=args.page_index,
            cursor_ttl=args.ttl
        )
    finally:
        client.close()

    for doc_id, doc in zip(results.ids, results):
        sys.stdout.write(json.dumps({"_id": doc_id, **doc}, ensure_ascii=False) + "\n")
    logger.info(f"Dumped {len(results)} documents from {args.index}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="esrepo",
        description="esrepo — typed document repository over Elasticsearch"
    )

    # Global options
    parser.add_argument("--url", help="Elasticsearch URL(s), comma-separated", default=None)
    parser.add_argument("--username", help="Basic-auth user", default=None)
    parser.add_argument("--password", help="Basic-auth password", default=None)
    parser.add_argument("--single-node", dest="single_node", action="store_true",
                        help="Target exactly one host")
    parser.add_argument("--ca-certs", dest="ca_certs", default=None, help="CA bundle path")
    parser.add_argument("--insecure", action="store_true",
                        help="Disable TLS certificate verification")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every request")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    create_parser = subparsers.add_parser("create", help="Create an index")
    create_parser.add_argument("index", help="Index name")
    create_parser.add_argument("--alias", help="Alias to bind", default=None)
    create_parser.add_argument("--shards", type=int, default=None, help="Primary shards")
    create_parser.add_argument("--replicas", type=int, default=None, help="Replica shards")

    alias_parser = subparsers.add_parser("alias", help="Bind an alias to an index")
    alias_parser.add_argument("alias", help="Alias name")
    alias_parser.add_argument("index", help="Index name")

    delete_parser = subparsers.add_parser("delete", help="Delete an index")
    delete_parser.add_argument("index", help="Index name")
    delete_parser.add_argument("-f", "--force", action="store_true", help="Skip confirmation")

    get_parser = subparsers.add_parser("get", help="Fetch a document by id")
    get_parser.add_argument("index", help="Index name")
    get_parser.add_argument("id", help="Document id")

    dump_parser = subparsers.add_parser("dump", help="Dump all documents as JSON lines")
    dump_parser.add_argument("index", help="Index or alias name")
    dump_parser.add_argument("--sort", help="field:order[,field:order]", default=None)
    dump_parser.add_argument("--page-size", dest="page_size", type=int, default=1000)
    dump_parser.add_argument("--page-index", dest="page_index", type=int, default=0)
    dump_parser.add_argument("--ttl", default="1m", help="Scroll cursor keep-alive")

    return parser


COMMANDS = {
    "create": cmd_create,
    "alias": cmd_alias,
    "delete": cmd_delete,
    "get": cmd_get,
    "dump": cmd_dump,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr
    )

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 1

    try:
        command(args)
    except ESRepoError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
