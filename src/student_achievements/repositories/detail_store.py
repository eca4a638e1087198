"""Document store for achievement details."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from ..schemas import AchievementContent, AchievementDetail, Attachment
from ..errors import NotFound, StorageError
from ..utils.datetime import utcnow

NOT_DELETED = {"$ne": True}


def _object_id(detail_ref: str) -> Optional[ObjectId]:
    if not detail_ref or not ObjectId.is_valid(detail_ref):
        return None
    return ObjectId(detail_ref)


def content_document(content: AchievementContent) -> Dict[str, Any]:
    """Serialize editable content with the persisted camelCase field names."""

    document = content.model_dump(by_alias=True, exclude_none=True)
    document["achievementType"] = content.achievement_type.value
    return document


class DetailStore:
    """Wraps the ``achievements`` collection.

    Soft-deleted documents stay in the collection with ``deleted: true`` and
    are hidden from reads unless asked for explicitly.
    """

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def ensure_indexes(self) -> None:
        try:
            self._collection.create_index([("studentId", ASCENDING), ("deleted", ASCENDING)])
            self._collection.create_index([("createdAt", ASCENDING)])
        except PyMongoError as exc:
            raise StorageError("Could not prepare achievement detail store.") from exc

    def insert(self, student_id: UUID, content: AchievementContent, *, now: Optional[datetime] = None) -> str:
        now = now or utcnow()
        document = content_document(content)
        document.update(
            {
                "studentId": str(student_id),
                "deleted": False,
                "createdAt": now,
                "updatedAt": now,
            }
        )
        try:
            result = self._collection.insert_one(document)
        except PyMongoError as exc:
            raise StorageError("Could not save achievement detail.") from exc
        return str(result.inserted_id)

    def find_by_ref(self, detail_ref: str, *, exclude_deleted: bool = True) -> Optional[AchievementDetail]:
        object_id = _object_id(detail_ref)
        if object_id is None:
            return None
        query: Dict[str, Any] = {"_id": object_id}
        if exclude_deleted:
            query["deleted"] = NOT_DELETED
        try:
            document = self._collection.find_one(query)
        except PyMongoError as exc:
            raise StorageError("Could not load achievement detail.") from exc
        if document is None:
            return None
        document["id"] = str(document.pop("_id"))
        return AchievementDetail.model_validate(document)

    def _update_one(self, detail_ref: str, query: Dict[str, Any], change: Dict[str, Any], action: str) -> None:
        object_id = _object_id(detail_ref)
        if object_id is None:
            raise NotFound("Achievement detail not found")
        try:
            result = self._collection.update_one({"_id": object_id, **query}, change)
        except PyMongoError as exc:
            raise StorageError(f"Could not {action}.") from exc
        if result.matched_count == 0:
            raise NotFound("Achievement detail not found")

    def replace_content(
        self, detail_ref: str, content: AchievementContent, *, now: Optional[datetime] = None
    ) -> None:
        """Overwrite every editable field; owner, timestamps of creation and deletion flags are left alone."""

        document = content_document(content)
        document.setdefault("details", {})
        document["updatedAt"] = now or utcnow()
        self._update_one(
            detail_ref,
            {"deleted": NOT_DELETED},
            {"$set": document},
            "update achievement detail",
        )

    def append_attachment(
        self, detail_ref: str, attachment: Attachment, *, now: Optional[datetime] = None
    ) -> None:
        self._update_one(
            detail_ref,
            {"deleted": NOT_DELETED},
            {
                "$push": {"attachments": attachment.model_dump(by_alias=True)},
                "$set": {"updatedAt": now or utcnow()},
            },
            "add attachment",
        )

    def mark_deleted(self, detail_ref: str, *, now: Optional[datetime] = None) -> bool:
        """Set the soft-delete flag; return ``False`` if it was already set.

        Raises ``NotFound`` when the document does not exist at all.
        """

        object_id = _object_id(detail_ref)
        if object_id is None:
            raise NotFound("Achievement detail not found")
        now = now or utcnow()
        try:
            result = self._collection.update_one(
                {"_id": object_id, "deleted": NOT_DELETED},
                {"$set": {"deleted": True, "deletedAt": now, "updatedAt": now}},
            )
            if result.matched_count:
                return True
            exists = self._collection.find_one({"_id": object_id}, {"_id": 1}) is not None
        except PyMongoError as exc:
            raise StorageError("Could not delete achievement detail.") from exc
        if not exists:
            raise NotFound("Achievement detail not found")
        return False

    def unmark_deleted(self, detail_ref: str) -> None:
        """Undo ``mark_deleted``; only used to repair a half-applied delete."""

        self._update_one(
            detail_ref,
            {},
            {"$set": {"deleted": False}, "$unset": {"deletedAt": ""}},
            "restore achievement detail",
        )

    def remove(self, detail_ref: str) -> None:
        """Physically remove a document that never got a reference."""

        object_id = _object_id(detail_ref)
        if object_id is None:
            return
        try:
            self._collection.delete_one({"_id": object_id})
        except PyMongoError as exc:
            raise StorageError("Could not remove achievement detail.") from exc

    def deletion_flags(self, *, created_before: Optional[datetime] = None) -> Dict[str, bool]:
        """Map every detail ref (optionally only older ones) to its soft-delete flag."""

        query: Dict[str, Any] = {}
        if created_before is not None:
            query["createdAt"] = {"$lt": created_before}
        try:
            cursor = self._collection.find(query, {"_id": 1, "deleted": 1})
            return {str(document["_id"]): bool(document.get("deleted")) for document in cursor}
        except PyMongoError as exc:
            raise StorageError("Could not scan achievement details.") from exc

