import logging
import threading
from typing import Dict, Optional, Tuple

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

logger = logging.getLogger(__name__)

_clients: Dict[str, MongoClient] = {}
_clients_lock = threading.Lock()


def take_client(dsn: str) -> MongoClient:
    """Return the cached client for a DSN, dialing it on first use"""
    with _clients_lock:
        client = _clients.get(dsn)
        if client is None:
            logger.info("Dialing MongoDB client")
            client = MongoClient(dsn)
            _clients[dsn] = client
        return client


def take_database(dsn: str, default_database: Optional[str] = None) -> Tuple[Database, MongoClient]:
    """
    Resolve the database named in the DSN path (or the default) on a cached client.

    Raises:
        pymongo.errors.ConfigurationError: neither the DSN nor the default names a database
    """
    client = take_client(dsn)
    return client.get_default_database(default_database), client


def dial_collection(database: Database, name: str) -> Collection:
    return database[name]


def close_clients() -> None:
    """Close and forget every cached client"""
    with _clients_lock:
        for client in _clients.values():
            client.close()
        _clients.clear()
