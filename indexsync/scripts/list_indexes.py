"""
List remote indexes
===================

Prints the secondary indexes of one or more collections with the canonical
key the reconciler matches them on.

    python -m indexsync.scripts.list_indexes --collection user --collection order
    python -m indexsync.scripts.list_indexes --all
"""

import argparse
import logging
import sys
from typing import List, Optional

from indexsync.config.settings import IndexSyncSettings
from indexsync.core.remote_indexes import list_remote_indexes
from indexsync.db.collection_admin import MongoCollectionAdmin
from indexsync.db.mongo import take_database

logger = logging.getLogger(__name__)


def list_collection_indexes(admin: MongoCollectionAdmin, collection_names: List[str]) -> List[str]:
    """One printable line per collection header and index"""
    lines = []
    for collection_name in collection_names:
        lines.append(f"📦 Collection: {collection_name}")
        if not admin.exists_collection(collection_name):
            lines.append("  (collection does not exist)")
            continue
        for index in list_remote_indexes(admin, collection_name):
            lines.append(f"  - {index.describe()}  key={index.canonical_key}")
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="List MongoDB indexes as the reconciler sees them")
    parser.add_argument("--collection", action="append", default=[], help="Collection to inspect (repeatable)")
    parser.add_argument("--all", action="store_true", help="Inspect every collection in the database")
    args = parser.parse_args(argv)

    if not args.collection and not args.all:
        parser.print_help()
        return 2

    logging.basicConfig(level=logging.INFO)
    settings = IndexSyncSettings.from_env()
    database, _ = take_database(settings.mongo_uri, settings.database_name)
    admin = MongoCollectionAdmin(database, settings.operation_timeout_ms)

    collection_names = list(args.collection)
    if args.all:
        collection_names = admin.list_collections()

    for line in list_collection_indexes(admin, collection_names):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
