"""
Homepage trek sections: curated trek lists and promotional banners.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from pymongo import ASCENDING

from database import TREK, TREK_SECTION, to_object_id, utcnow
from errors import InvalidRequestError, NotFoundError
from schemas import BannerSection, TrekListSection

logger = logging.getLogger(__name__)

ADMIN_TREK_FIELDS = ("name", "regionName", "slug")
PUBLIC_TREK_FIELDS = (
    "name", "regionName", "slug", "displayPrice", "strikedPrice",
    "images", "duration", "difficulty",
)

BANNER_FIELDS = (
    "bannerImage", "overlayText", "overlayColor", "overlayOpacity", "textColor",
    "linkToTrek", "couponCode", "discountPercentage", "mobileOptimized",
)

SectionPayload = Union[TrekListSection, BannerSection]


class TrekSectionStore:
    def __init__(self, db):
        self.collection = db[TREK_SECTION]
        self.treks = db[TREK]

    # -------------------- Reads --------------------
    def list(self) -> List[Dict[str, Any]]:
        sections = list(self.collection.find({}).sort("displayOrder", ASCENDING))
        return self._populate(sections, ADMIN_TREK_FIELDS)

    def get_by_id(self, section_id: str) -> Dict[str, Any]:
        doc = self.collection.find_one({"_id": to_object_id(section_id)})
        if not doc:
            raise NotFoundError("Trek section not found")
        return self._populate([doc], ADMIN_TREK_FIELDS)[0]

    def stored_type(self, section_id: str) -> str:
        doc = self.collection.find_one({"_id": to_object_id(section_id)}, {"type": 1})
        if not doc:
            raise NotFoundError("Trek section not found")
        return doc.get("type") or "trek"

    def list_active_populated(self) -> List[Dict[str, Any]]:
        sections = list(self.collection.find({"isActive": True}).sort("displayOrder", ASCENDING))
        logger.debug("Found %d active sections", len(sections))
        return self._populate(sections, PUBLIC_TREK_FIELDS, enabled_only=True)

    # -------------------- Writes --------------------
    def create(self, payload: SectionPayload) -> Dict[str, Any]:
        doc = self._variant_fields(payload)
        doc.update({
            "title": payload.title,
            "type": payload.type,
            "description": payload.description,
            "displayOrder": payload.display_order,
            "isActive": payload.is_active,
        })
        now = utcnow()
        doc["createdAt"] = now
        doc["updatedAt"] = now
        result = self.collection.insert_one(doc)
        logger.info("Trek section created: %s (%s)", payload.title, payload.type)
        return self.get_by_id(str(result.inserted_id))

    def update(self, section_id: str, payload: SectionPayload) -> Dict[str, Any]:
        oid = to_object_id(section_id)
        if not self.collection.find_one({"_id": oid}, {"_id": 1}):
            raise NotFoundError("Trek section not found")

        fields = self._variant_fields(payload)
        fields.update({
            "title": payload.title,
            "type": payload.type,
            "description": payload.description,
            "updatedAt": utcnow(),
        })
        if "display_order" in payload.model_fields_set:
            fields["displayOrder"] = payload.display_order
        if "is_active" in payload.model_fields_set:
            fields["isActive"] = payload.is_active

        update: Dict[str, Any] = {"$set": fields}
        if payload.type == "trek":
            update["$unset"] = {name: "" for name in BANNER_FIELDS}
        else:
            fields["treks"] = []

        self.collection.update_one({"_id": oid}, update)
        return self.get_by_id(section_id)

    def delete(self, section_id: str) -> None:
        res = self.collection.delete_one({"_id": to_object_id(section_id)})
        if res.deleted_count == 0:
            raise NotFoundError("Trek section not found")
        logger.info("Trek section removed: %s", section_id)

    # -------------------- Helpers --------------------
    def _variant_fields(self, payload: SectionPayload) -> Dict[str, Any]:
        if isinstance(payload, TrekListSection):
            return {"treks": [to_object_id(t) for t in payload.treks]}

        link = None
        if payload.link_to_trek:
            link = to_object_id(payload.link_to_trek)
            if not self.treks.find_one({"_id": link}, {"_id": 1}):
                raise InvalidRequestError("Selected trek does not exist")
        return {
            "bannerImage": payload.banner_image,
            "overlayText": payload.overlay_text,
            "overlayColor": payload.overlay_color,
            "overlayOpacity": payload.overlay_opacity,
            "textColor": payload.text_color,
            "linkToTrek": link,
            "couponCode": payload.coupon_code,
            "discountPercentage": payload.discount_percentage,
            "mobileOptimized": payload.mobile_optimized,
        }

    def _populate(
        self,
        sections: List[Dict[str, Any]],
        fields: Iterable[str],
        enabled_only: bool = False,
    ) -> List[Dict[str, Any]]:
        """Replace trek ids with trek documents, dropping ids that do not resolve."""
        ids = set()
        for section in sections:
            ids.update(section.get("treks") or [])
            if section.get("linkToTrek"):
                ids.add(section["linkToTrek"])
        if not ids:
            return sections

        query: Dict[str, Any] = {"_id": {"$in": list(ids)}}
        if enabled_only:
            query["isEnabled"] = True
        projection = {name: 1 for name in fields}
        found = {t["_id"]: t for t in self.treks.find(query, projection)}

        for section in sections:
            section["treks"] = [found[t] for t in section.get("treks") or [] if t in found]
            link: Optional[Any] = section.get("linkToTrek")
            if link is not None:
                section["linkToTrek"] = found.get(link)
        return sections
