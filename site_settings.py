"""
Site-wide settings stored as a single MongoDB document.

The document is addressed by a fixed singleton key backed by a unique
index, so creation is an upsert rather than a find-then-insert.
"""
import logging
from typing import Any, Dict

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import SETTINGS, utcnow
from schemas import SettingsUpdate, SiteSettings

logger = logging.getLogger(__name__)

SINGLETON_KEY = {"singleton": "site"}
HIDDEN = {"singleton": 0}

GROUPS = ("enquiryBanner", "landingPage", "blogPage", "weekendGetawayPage")


def default_settings() -> Dict[str, Any]:
    return SiteSettings().model_dump(by_alias=True)


class SettingsStore:
    def __init__(self, db):
        self.collection = db[SETTINGS]

    def get_instance(self) -> Dict[str, Any]:
        now = utcnow()
        defaults = default_settings()
        defaults.update({"createdAt": now, "updatedAt": now})
        try:
            doc = self.collection.find_one_and_update(
                SINGLETON_KEY,
                {"$setOnInsert": defaults},
                projection=HIDDEN,
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # another request inserted it between our match and insert
            doc = self.collection.find_one(SINGLETON_KEY, HIDDEN)
        return doc

    def update(self, payload: SettingsUpdate) -> Dict[str, Any]:
        self.get_instance()
        changes = payload.model_dump(by_alias=True, exclude_unset=True)
        fields: Dict[str, Any] = {"updatedAt": utcnow()}
        for group, values in changes.items():
            if values is None:
                continue
            for key, value in values.items():
                fields[f"{group}.{key}"] = value
        doc = self.collection.find_one_and_update(
            SINGLETON_KEY,
            {"$set": fields},
            projection=HIDDEN,
            return_document=ReturnDocument.AFTER,
        )
        logger.info("Settings updated: %s", ", ".join(sorted(changes)) or "no groups")
        return doc

    def get_group(self, group: str) -> Dict[str, Any]:
        if group not in GROUPS:
            raise KeyError(group)
        return self.get_instance().get(group) or {}
