"""
Admin notification log.

Notifications are appended by business events (bookings, leads, tickets,
cancellation and reschedule requests) and only ever move from unread to
read before being deleted.
"""
import logging
import math
from typing import Any, Dict, Optional

from pymongo import DESCENDING

from database import NOTIFICATION, create_document, to_object_id, utcnow
from errors import NotFoundError
from schemas import Notification, NotificationType, Priority

logger = logging.getLogger(__name__)


class NotificationStore:
    def __init__(self, db):
        self.db = db
        self.collection = db[NOTIFICATION]

    def create(
        self,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        priority: str = Priority.MEDIUM.value,
    ) -> Dict[str, Any]:
        notification = Notification(
            type=type, title=title, message=message, data=data or {}, priority=priority,
        )
        new_id = create_document(NOTIFICATION, notification, database=self.db)
        logger.info("Notification created: %s - %s", notification.type, title)
        return self.collection.find_one({"_id": to_object_id(new_id)})

    def list(
        self,
        is_read: Optional[bool] = None,
        type: Optional[str] = None,
        priority: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        filter_q: Dict[str, Any] = {}
        if is_read is not None:
            filter_q["isRead"] = is_read
        if type:
            filter_q["type"] = type
        if priority:
            filter_q["priority"] = priority

        skip = (page - 1) * limit
        items = list(
            self.collection.find(filter_q)
            .sort("createdAt", DESCENDING)
            .skip(skip)
            .limit(limit)
        )
        total = self.collection.count_documents(filter_q)
        total_pages = math.ceil(total / limit)
        return {
            "notifications": items,
            "pagination": {
                "currentPage": page,
                "totalPages": total_pages,
                "total": total,
                "hasNextPage": page < total_pages,
                "hasPrevPage": page > 1,
            },
        }

    def unread_count(self) -> int:
        return self.collection.count_documents({"isRead": False})

    def mark_read(self, notification_id: str) -> Dict[str, Any]:
        oid = to_object_id(notification_id)
        now = utcnow()
        res = self.collection.update_one(
            {"_id": oid},
            {"$set": {"isRead": True, "readAt": now, "updatedAt": now}},
        )
        if res.matched_count == 0:
            raise NotFoundError("Notification not found")
        return self.collection.find_one({"_id": oid})

    def mark_all_read(self) -> int:
        now = utcnow()
        res = self.collection.update_many(
            {"isRead": False},
            {"$set": {"isRead": True, "readAt": now, "updatedAt": now}},
        )
        return res.modified_count

    def delete(self, notification_id: str) -> None:
        res = self.collection.delete_one({"_id": to_object_id(notification_id)})
        if res.deleted_count == 0:
            raise NotFoundError("Notification not found")

    def delete_all_read(self) -> int:
        return self.collection.delete_many({"isRead": True}).deleted_count


# -------------------- Business events --------------------
def _customer_name(booking: Dict[str, Any], user: Optional[Dict[str, Any]]) -> Optional[str]:
    return (user or {}).get("name") or (booking.get("userDetails") or {}).get("name")


def notify_booking_confirmed(store: NotificationStore, booking, trek=None, user=None):
    trek = trek or {}
    name = _customer_name(booking, user)
    return store.create(
        NotificationType.BOOKING_CONFIRMED.value,
        "💰 New Booking Confirmed",
        f"Payment confirmed for booking #{booking.get('_id')} - {trek.get('name') or 'Trek'} by {name}",
        {
            "bookingId": booking.get("_id"),
            "trekId": trek.get("_id"),
            "trekName": trek.get("name"),
            "userId": (user or {}).get("_id"),
            "userName": name,
            "amount": booking.get("totalPrice"),
            "participants": booking.get("numberOfParticipants"),
        },
        Priority.HIGH.value,
    )


def notify_lead_created(store: NotificationStore, lead):
    priority = Priority.HIGH if lead.get("requestCallback") else Priority.MEDIUM
    return store.create(
        NotificationType.LEAD_CREATED.value,
        "📞 New Lead Created",
        f"New lead from {lead.get('name') or lead.get('email')} via {lead.get('source')}",
        {
            "leadId": lead.get("_id"),
            "leadName": lead.get("name"),
            "leadEmail": lead.get("email"),
            "leadPhone": lead.get("phone"),
            "source": lead.get("source"),
            "requestCallback": lead.get("requestCallback"),
        },
        priority.value,
    )


def notify_support_ticket(store: NotificationStore, ticket, user=None, booking=None, trek=None):
    user, booking, trek = user or {}, booking or {}, trek or {}
    priority = Priority.HIGH if ticket.get("priority") == "high" else Priority.MEDIUM
    return store.create(
        NotificationType.SUPPORT_TICKET_CREATED.value,
        "🎫 New Support Ticket",
        f"New ticket from {user.get('name')} - {ticket.get('subject')}",
        {
            "ticketId": ticket.get("_id"),
            "userId": user.get("_id"),
            "userName": user.get("name"),
            "bookingId": booking.get("_id"),
            "trekId": trek.get("_id"),
            "trekName": trek.get("name"),
            "subject": ticket.get("subject"),
            "priority": ticket.get("priority"),
        },
        priority.value,
    )


def notify_cancellation_request(store: NotificationStore, booking, user=None, trek=None):
    trek = trek or {}
    name = _customer_name(booking, user)
    request = booking.get("cancellationRequest") or {}
    return store.create(
        NotificationType.CANCELLATION_REQUEST.value,
        "❌ Cancellation Request",
        f"Cancellation request from {name} for {trek.get('name') or 'Trek'}",
        {
            "bookingId": booking.get("_id"),
            "userId": (user or {}).get("_id"),
            "userName": name,
            "trekId": trek.get("_id"),
            "trekName": trek.get("name"),
            "reason": request.get("reason"),
            "amount": booking.get("totalPrice"),
        },
        Priority.HIGH.value,
    )


def notify_reschedule_request(store: NotificationStore, booking, user=None, trek=None):
    trek = trek or {}
    name = _customer_name(booking, user)
    request = booking.get("cancellationRequest") or {}
    return store.create(
        NotificationType.RESCHEDULE_REQUEST.value,
        "🔄 Reschedule Request",
        f"Reschedule request from {name} for {trek.get('name') or 'Trek'}",
        {
            "bookingId": booking.get("_id"),
            "userId": (user or {}).get("_id"),
            "userName": name,
            "trekId": trek.get("_id"),
            "trekName": trek.get("name"),
            "reason": request.get("reason"),
            "preferredBatch": request.get("preferredBatch"),
            "amount": booking.get("totalPrice"),
        },
        Priority.MEDIUM.value,
    )
