import logging
import os
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, File, Form, Header, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

import database
from database import ensure_indexes, get_db, serialize_doc
from errors import ApiError, InvalidRequestError
from google_reviews import fetch_google_reviews
from notifications import NotificationStore
from performance import PerformanceMonitor
from schemas import Notification, NotificationType, Priority, SettingsUpdate, SiteSettings, TrekSection
from site_settings import SettingsStore
from storage import S3Storage, scrub_image_references
from trek_sections import TrekSectionStore

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        ensure_indexes(database.db)
        SettingsStore(database.db).get_instance()
        logger.info("Indexes ensured and settings initialised on %s", database.DATABASE_NAME)
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; store-backed routes will fail")
    yield


UNMATCHED_ROUTE = "<unmatched>"

app = FastAPI(title="Trek Admin API", lifespan=lifespan)
app.state.monitor = PerformanceMonitor(slow_threshold_ms=float(os.getenv("SLOW_REQUEST_MS", "1000")))

frontend_url = os.getenv("FRONTEND_URL", "*")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*" if frontend_url == "*" else frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def time_requests(request: Request, call_next):
    monitor = request.app.state.monitor
    started = monitor.start()
    try:
        return await call_next(request)
    finally:
        # paths with no matching route share a single metric key
        route = request.scope.get("route")
        monitor.record(f"{request.method} {getattr(route, 'path', UNMATCHED_ROUTE)}", started)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = {"detail": exc.message}
    if exc.code:
        body["code"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=body)


# -------------------- Helpers --------------------
def require_admin(x_admin_key: Optional[str] = Header(None)):
    expected = os.getenv("ADMIN_API_KEY")
    if expected and x_admin_key == expected:
        return True
    if not expected:
        # If no key set, allow all (dev mode)
        return True
    raise HTTPException(status_code=401, detail="Unauthorized")


def get_settings_store(db=Depends(get_db)) -> SettingsStore:
    return SettingsStore(db)


def get_section_store(db=Depends(get_db)) -> TrekSectionStore:
    return TrekSectionStore(db)


def get_notification_store(db=Depends(get_db)) -> NotificationStore:
    return NotificationStore(db)


@lru_cache(maxsize=1)
def get_storage() -> S3Storage:
    return S3Storage.from_env()


# -------------------- Root & Health --------------------
@app.get("/")
def read_root():
    return {"message": "Trek Admin API is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    db = database.db
    if db is None:
        response["database"] = "⚠️ Available but not initialized"
        return response
    response["database"] = "✅ Available"
    response["database_url"] = "✅ Set" if database.DATABASE_URL else "❌ Not Set"
    response["database_name"] = getattr(db, "name", "unknown")
    response["connection_status"] = "Connected"
    try:
        collections = db.list_collection_names()
        response["collections"] = collections[:20]
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        logger.exception("Database health check failed")
        response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    return response


@app.get("/schema")
def get_schema_definitions():
    return {
        "settings": SiteSettings.model_json_schema(by_alias=True),
        "treksection": TrekSection.model_json_schema(by_alias=True),
        "notification": Notification.model_json_schema(by_alias=True),
    }


# -------------------- Settings --------------------
@app.get("/api/settings")
def get_settings(_: bool = Depends(require_admin), store: SettingsStore = Depends(get_settings_store)):
    return serialize_doc(store.get_instance())


@app.put("/api/settings")
def update_settings(
    payload: SettingsUpdate,
    _: bool = Depends(require_admin),
    store: SettingsStore = Depends(get_settings_store),
):
    return serialize_doc(store.update(payload))


@app.get("/api/settings/enquiry-banner")
def get_enquiry_banner(store: SettingsStore = Depends(get_settings_store)):
    return {"enquiryBanner": store.get_group("enquiryBanner")}


@app.get("/api/settings/landing-page")
def get_landing_page(store: SettingsStore = Depends(get_settings_store)):
    return {"landingPage": store.get_group("landingPage")}


@app.get("/api/settings/blog-page")
def get_blog_page(store: SettingsStore = Depends(get_settings_store)):
    return {"blogPage": store.get_group("blogPage")}


@app.get("/api/settings/weekend-getaway-page")
def get_weekend_getaway_page(store: SettingsStore = Depends(get_settings_store)):
    return {"weekendGetawayPage": store.get_group("weekendGetawayPage")}


# -------------------- Trek Sections --------------------
@app.get("/api/trek-sections/active")
def list_active_sections(store: TrekSectionStore = Depends(get_section_store)):
    return [serialize_doc(d) for d in store.list_active_populated()]


@app.get("/api/trek-sections")
def list_sections(_: bool = Depends(require_admin), store: TrekSectionStore = Depends(get_section_store)):
    return [serialize_doc(d) for d in store.list()]


@app.post("/api/trek-sections", status_code=201)
def create_section(
    payload: TrekSection,
    _: bool = Depends(require_admin),
    store: TrekSectionStore = Depends(get_section_store),
):
    return serialize_doc(store.create(payload.root))


@app.get("/api/trek-sections/{section_id}")
def get_section(section_id: str, _: bool = Depends(require_admin), store: TrekSectionStore = Depends(get_section_store)):
    return serialize_doc(store.get_by_id(section_id))


@app.put("/api/trek-sections/{section_id}")
def update_section(
    section_id: str,
    _: bool = Depends(require_admin),
    body: Dict[str, Any] = Body(...),
    store: TrekSectionStore = Depends(get_section_store),
):
    # a body without type keeps the stored variant
    if not body.get("type"):
        body = {**body, "type": store.stored_type(section_id)}
    try:
        payload = TrekSection.model_validate(body)
    except ValidationError as exc:
        errors = [{**e, "loc": ("body", *e["loc"])} for e in exc.errors(include_url=False)]
        raise RequestValidationError(errors, body=body)
    return serialize_doc(store.update(section_id, payload.root))


@app.delete("/api/trek-sections/{section_id}")
def delete_section(section_id: str, _: bool = Depends(require_admin), store: TrekSectionStore = Depends(get_section_store)):
    store.delete(section_id)
    return {"id": section_id, "message": "Trek section removed"}


# -------------------- Notifications --------------------
@app.get("/api/notifications")
def list_notifications(
    _: bool = Depends(require_admin),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    type: Optional[NotificationType] = None,
    priority: Optional[Priority] = None,
    store: NotificationStore = Depends(get_notification_store),
):
    result = store.list(
        is_read=is_read,
        type=type.value if type else None,
        priority=priority.value if priority else None,
        page=page,
        limit=limit,
    )
    result["notifications"] = [serialize_doc(d) for d in result["notifications"]]
    return result


@app.get("/api/notifications/unread-count")
def unread_count(_: bool = Depends(require_admin), store: NotificationStore = Depends(get_notification_store)):
    return {"count": store.unread_count()}


@app.put("/api/notifications/mark-all-read")
def mark_all_read(_: bool = Depends(require_admin), store: NotificationStore = Depends(get_notification_store)):
    updated = store.mark_all_read()
    return {"message": "All notifications marked as read", "updatedCount": updated}


@app.put("/api/notifications/{notification_id}/read")
def mark_read(
    notification_id: str,
    _: bool = Depends(require_admin),
    store: NotificationStore = Depends(get_notification_store),
):
    doc = store.mark_read(notification_id)
    return {"message": "Notification marked as read", "notification": serialize_doc(doc)}


@app.delete("/api/notifications/delete-read")
def delete_read(_: bool = Depends(require_admin), store: NotificationStore = Depends(get_notification_store)):
    deleted = store.delete_all_read()
    return {"message": "Read notifications deleted successfully", "deletedCount": deleted}


@app.delete("/api/notifications/{notification_id}")
def delete_notification(
    notification_id: str,
    _: bool = Depends(require_admin),
    store: NotificationStore = Depends(get_notification_store),
):
    store.delete(notification_id)
    return {"message": "Notification deleted successfully"}


# -------------------- Uploads --------------------
@app.post("/api/upload")
def upload_file(
    _: bool = Depends(require_admin),
    image: Optional[UploadFile] = File(None),
    folder: Optional[str] = Form(None),
    storage: S3Storage = Depends(get_storage),
):
    if image is None:
        raise InvalidRequestError("No file uploaded")
    # one byte past the cap is enough to reject oversized files
    data = image.file.read(storage.max_bytes + 1)
    url = storage.upload(data, image.filename, image.content_type, folder)
    return {"url": url}


@app.delete("/api/upload/{key:path}")
def delete_upload(
    key: str,
    _: bool = Depends(require_admin),
    db=Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    actual_key = storage.normalize_key(key)
    storage.delete(actual_key)
    image_url = storage.public_url(actual_key)
    report = scrub_image_references(db, image_url)
    return {
        "message": "Image deletion process completed",
        "s3Deleted": True,
        "mongoUpdated": report["trekModifiedCount"] > 0 or report["regionModifiedCount"] > 0,
        "details": {**report, "imageUrl": image_url, "actualKey": actual_key},
    }


# -------------------- Google Reviews --------------------
@app.get("/api/google/reviews")
def google_reviews(
    place_id: Optional[str] = Query(None, alias="placeId"),
    place_name: Optional[str] = Query(None, alias="placeName"),
):
    if not place_id and not place_name:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "placeId or placeName is required"},
        )
    try:
        reviews = fetch_google_reviews(place_id=place_id, place_name=place_name)
    except ApiError as exc:
        logger.exception("Error fetching Google reviews")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Failed to fetch Google reviews", "error": exc.message},
        )
    return {"success": True, "reviews": reviews}


# -------------------- Performance --------------------
@app.get("/api/performance")
def performance_report(request: Request, _: bool = Depends(require_admin), limit: int = Query(10, ge=1, le=100)):
    monitor = request.app.state.monitor
    return {
        "metrics": monitor.get_metrics(),
        "slowRequests": [
            {**s, "timestamp": s["timestamp"].isoformat()} for s in monitor.get_slow_samples(limit)
        ],
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
