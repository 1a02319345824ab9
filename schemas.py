"""
Database Schemas for the Trek Admin API

Each Pydantic model maps to a MongoDB collection (lowercased class name).
- SiteSettings -> "settings" (single document)
- TrekSection  -> "treksection" (TrekListSection | BannerSection)
- Notification -> "notification"

Documents are stored with camelCase keys; models accept either the alias
or the Python field name.
"""
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Discriminator, Field, RootModel, Tag
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

IMAGE_URL_RE = re.compile(r"^https?://.+\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)
HEX_COLOR = r"^#(?:[0-9a-fA-F]{3}){1,2}$"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


def _check_image_url(v: Optional[str]) -> Optional[str]:
    if not v:
        return v
    if not IMAGE_URL_RE.match(v):
        raise ValueError("must be a valid image URL")
    return v


ImageUrl = Annotated[str, AfterValidator(_check_image_url)]


# -------------------- Settings --------------------
class EnquiryBanner(CamelModel):
    is_active: bool = False
    title: str = Field("", max_length=100, description="Banner title")
    subtitle: str = Field("", max_length=200)
    image: ImageUrl = Field("", description="Banner image URL (jpg/jpeg/png/gif/webp)")
    header: str = Field("", max_length=50)
    discount_text: str = Field("", max_length=100)
    show_overlay: bool = True


class PageHero(CamelModel):
    hero_image: ImageUrl = Field("", description="Hero image URL (jpg/jpeg/png/gif/webp)")
    hero_title: str = Field("", max_length=100)
    hero_subtitle: str = Field("", max_length=200)


class SiteSettings(CamelModel):
    enquiry_banner: EnquiryBanner = Field(default_factory=EnquiryBanner)
    landing_page: PageHero = Field(default_factory=PageHero)
    blog_page: PageHero = Field(default_factory=PageHero)
    weekend_getaway_page: PageHero = Field(default_factory=PageHero)


class SettingsUpdate(CamelModel):
    """Partial update: only the groups and keys actually sent are merged."""
    enquiry_banner: Optional[EnquiryBanner] = None
    landing_page: Optional[PageHero] = None
    blog_page: Optional[PageHero] = None
    weekend_getaway_page: Optional[PageHero] = None


# -------------------- Trek Sections --------------------
class SectionBase(CamelModel):
    title: str = Field(..., min_length=1, description="Section title")
    description: Optional[str] = None
    display_order: int = Field(0, description="Sort position on the homepage")
    is_active: bool = True


class TrekListSection(SectionBase):
    type: Literal["trek"] = "trek"
    treks: List[str] = Field(..., min_length=1, description="Ordered trek ids")


class BannerSection(SectionBase):
    type: Literal["banner"]
    banner_image: str = Field(..., min_length=1)
    overlay_text: str = Field(..., min_length=1)
    overlay_color: str = Field("#000000", pattern=HEX_COLOR)
    overlay_opacity: float = Field(0.5, ge=0, le=1)
    text_color: str = Field("#FFFFFF", pattern=HEX_COLOR)
    link_to_trek: Optional[str] = Field(None, description="Trek id the banner links to")
    coupon_code: Optional[str] = None
    discount_percentage: Optional[float] = Field(None, ge=0, le=100)
    mobile_optimized: bool = True


def _section_kind(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("type") or "trek"
    return getattr(value, "type", "trek")


class TrekSection(RootModel):
    root: Annotated[
        Union[
            Annotated[TrekListSection, Tag("trek")],
            Annotated[BannerSection, Tag("banner")],
        ],
        Discriminator(_section_kind),
    ]


# -------------------- Notifications --------------------
class NotificationType(str, Enum):
    BOOKING_CONFIRMED = "booking_confirmed"
    LEAD_CREATED = "lead_created"
    SUPPORT_TICKET_CREATED = "support_ticket_created"
    CANCELLATION_REQUEST = "cancellation_request"
    RESCHEDULE_REQUEST = "reschedule_request"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Notification(CamelModel):
    model_config = ConfigDict(use_enum_values=True)

    type: NotificationType
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    priority: Priority = Priority.MEDIUM
    read_at: Optional[datetime] = None
