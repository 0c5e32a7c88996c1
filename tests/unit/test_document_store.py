"""
Unit tests for the SQLite document store and database manager
"""

import asyncio

import pytest

from hitchsafe.core.database import DatabaseManager
from hitchsafe.core.document_store import SQLiteDocumentStore, field_path
from hitchsafe.core.errors import PersistenceError


class TestFieldPath:

    def test_simple_and_nested(self):
        assert field_path("status") == '$."status"'
        assert field_path("emergencyData.recordingRef") == '$."emergencyData"."recordingRef"'

    def test_empty_segment_rejected(self):
        with pytest.raises(PersistenceError):
            field_path("emergencyData..recordingRef")


class TestSQLiteDocumentStore:
    """Test cases for SQLiteDocumentStore"""

    @pytest.mark.asyncio
    async def test_set_and_get_document(self, sqlite_store):
        await sqlite_store.set_document("users", "u1", {"uid": "u1", "firstName": "Ana"})

        assert await sqlite_store.get_document("users", "u1") == {"uid": "u1", "firstName": "Ana"}
        assert await sqlite_store.get_document("users", "missing") is None

    @pytest.mark.asyncio
    async def test_set_document_replaces(self, sqlite_store):
        await sqlite_store.set_document("users", "u1", {"a": 1, "b": 2})
        await sqlite_store.set_document("users", "u1", {"a": 3})

        assert await sqlite_store.get_document("users", "u1") == {"a": 3}

    @pytest.mark.asyncio
    async def test_add_document_generates_ids(self, sqlite_store):
        first = await sqlite_store.add_document("trips", {"status": "active"})
        second = await sqlite_store.add_document("trips", {"status": "active"})

        assert first != second
        assert await sqlite_store.get_document("trips", first) == {"status": "active"}

    @pytest.mark.asyncio
    async def test_update_fields_only_touches_named_fields(self, sqlite_store):
        doc_id = await sqlite_store.add_document("trips", {
            "status": "active",
            "currentLocation": {"latitude": 1.0},
            "emergencyData": {"message": "help", "recordingRef": None}
        })

        await sqlite_store.update_fields("trips", doc_id, {
            "currentLocation": {"latitude": 2.0, "longitude": 3.0},
            "emergencyData.recordingRef": "file.mp4"
        })

        document = await sqlite_store.get_document("trips", doc_id)
        assert document["status"] == "active"
        assert document["currentLocation"] == {"latitude": 2.0, "longitude": 3.0}
        assert document["emergencyData"] == {"message": "help", "recordingRef": "file.mp4"}

    @pytest.mark.asyncio
    async def test_concurrent_field_updates_do_not_clobber(self, sqlite_store):
        doc_id = await sqlite_store.add_document("trips", {"status": "active"})

        await asyncio.gather(
            sqlite_store.update_fields("trips", doc_id, {"currentLocation": {"latitude": 5.0}}),
            sqlite_store.update_fields("trips", doc_id, {"isEmergency": True, "status": "emergency"}),
        )

        document = await sqlite_store.get_document("trips", doc_id)
        assert document["currentLocation"] == {"latitude": 5.0}
        assert document["isEmergency"] is True
        assert document["status"] == "emergency"

    @pytest.mark.asyncio
    async def test_update_missing_document_fails(self, sqlite_store):
        with pytest.raises(PersistenceError):
            await sqlite_store.update_fields("trips", "missing", {"status": "completed"})

    @pytest.mark.asyncio
    async def test_unserializable_values_fail(self, sqlite_store):
        doc_id = await sqlite_store.add_document("trips", {"status": "active"})

        with pytest.raises(PersistenceError):
            await sqlite_store.update_fields("trips", doc_id, {"status": object()})
        with pytest.raises(PersistenceError):
            await sqlite_store.set_document("trips", "x", {"bad": {1, 2}})

    @pytest.mark.asyncio
    async def test_subcollection_keeps_insertion_order(self, sqlite_store):
        await sqlite_store.set_document("users", "u1", {"uid": "u1"})
        ids = []
        for name in ("Zed", "Amy", "Amy"):
            ids.append(await sqlite_store.add_to_subcollection(
                "users", "u1", "emergency_contacts", {"name": name}
            ))

        children = await sqlite_store.list_subcollection("users", "u1", "emergency_contacts")

        assert [child["name"] for child in children] == ["Zed", "Amy", "Amy"]
        assert [child["id"] for child in children] == ids
        assert await sqlite_store.list_subcollection("users", "u2", "emergency_contacts") == []


class TestDatabaseManager:

    def test_migrations_recorded_once(self, temp_dir):
        path = str(temp_dir / "migrate.db")
        first = DatabaseManager(path)
        first.close()
        second = DatabaseManager(path)

        rows = second.execute_query("SELECT version, name FROM migrations")
        assert [(row['version'], row['name']) for row in rows] == [(1, 'document_store')]
        second.close()

    @pytest.mark.asyncio
    async def test_stats_and_backup(self, database, temp_dir):
        store = SQLiteDocumentStore(database)
        await store.set_document("users", "u1", {"uid": "u1"})
        await store.add_document("trips", {"status": "active"})
        await store.add_to_subcollection("users", "u1", "emergency_contacts", {"name": "A"})

        stats = database.get_stats()
        assert stats['documents'] == {'trips': 1, 'users': 1}
        assert stats['subdocuments'] == 1

        backup_path = database.backup_database(str(temp_dir / "backup.db"))
        restored = DatabaseManager(backup_path)
        assert restored.get_stats()['documents'] == {'trips': 1, 'users': 1}
        restored.close()
