"""
SQLite-backed document store

Documents are JSON objects keyed by (collection, id). Field updates are
applied inside SQLite with a single json_set statement, so concurrent
writers to different fields of the same document never overwrite each
other: the consistency model is last-write-wins per field.
"""

import asyncio
import json
import logging
import sqlite3
import uuid
from typing import Any, Dict, List, Optional, Tuple

from .database import DatabaseManager
from .errors import PersistenceError
from .interfaces import DocumentStore


def field_path(field_name: str) -> str:
    """Translate a dot-separated field name into a SQLite JSON path"""
    parts = field_name.split('.')
    if not all(parts):
        raise PersistenceError(f"Invalid field path: {field_name!r}")
    return '$' + ''.join('."{}"'.format(part.replace('"', '\\"')) for part in parts)


class SQLiteDocumentStore(DocumentStore):
    """DocumentStore over the HitchSafe SQLite database"""

    def __init__(self, database: DatabaseManager):
        self.database = database
        self.logger = logging.getLogger(__name__)

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise PersistenceError(f"Database error: {e}") from e
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Document is not JSON serializable: {e}") from e

    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        rows = await self._run(
            self.database.execute_query,
            "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id)
        )
        if not rows:
            return None
        return json.loads(rows[0]['data'])

    async def set_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        await self._run(self._set_document, collection, doc_id, data)

    def _set_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.database.execute_update(
            """
            INSERT INTO documents (collection, doc_id, data)
            VALUES (?, ?, ?)
            ON CONFLICT(collection, doc_id) DO UPDATE SET
                data = excluded.data,
                updated_at = CURRENT_TIMESTAMP
            """,
            (collection, doc_id, json.dumps(data))
        )

    async def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        await self._run(self._insert_document, collection, doc_id, data)
        return doc_id

    def _insert_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.database.execute_update(
            "INSERT INTO documents (collection, doc_id, data) VALUES (?, ?, ?)",
            (collection, doc_id, json.dumps(data))
        )

    async def update_fields(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        if not fields:
            return

        try:
            query, params = self._build_update(collection, doc_id, fields)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Fields are not JSON serializable: {e}") from e
        updated = await self._run(self.database.execute_update, query, params)
        if updated == 0:
            raise PersistenceError(f"No document {collection}/{doc_id} to update")

    def _build_update(self, collection: str, doc_id: str,
                      fields: Dict[str, Any]) -> Tuple[str, Tuple]:
        assignments = []
        params: List[Any] = []
        for name, value in fields.items():
            assignments.append("?, json(?)")
            params.extend([field_path(name), json.dumps(value)])

        query = (
            f"UPDATE documents SET data = json_set(data, {', '.join(assignments)}), "
            "updated_at = CURRENT_TIMESTAMP "
            "WHERE collection = ? AND doc_id = ?"
        )
        params.extend([collection, doc_id])
        return query, tuple(params)

    async def add_to_subcollection(self, collection: str, doc_id: str,
                                   subcollection: str, data: Dict[str, Any]) -> str:
        child_id = uuid.uuid4().hex
        await self._run(self._insert_subdocument, collection, doc_id, subcollection, child_id, data)
        return child_id

    def _insert_subdocument(self, collection: str, doc_id: str, subcollection: str,
                            child_id: str, data: Dict[str, Any]) -> None:
        self.database.execute_update(
            """
            INSERT INTO subdocuments (collection, parent_id, subcollection, doc_id, data)
            VALUES (?, ?, ?, ?, ?)
            """,
            (collection, doc_id, subcollection, child_id, json.dumps(data))
        )

    async def list_subcollection(self, collection: str, doc_id: str,
                                 subcollection: str) -> List[Dict[str, Any]]:
        rows = await self._run(
            self.database.execute_query,
            """
            SELECT doc_id, data FROM subdocuments
            WHERE collection = ? AND parent_id = ? AND subcollection = ?
            ORDER BY seq
            """,
            (collection, doc_id, subcollection)
        )
        documents = []
        for row in rows:
            data = json.loads(row['data'])
            data['id'] = row['doc_id']
            documents.append(data)
        return documents
