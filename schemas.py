from datetime import datetime
from typing import Annotated, List, Literal, Optional
from urllib.parse import urlsplit

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

Theme = Literal["light", "dark"]
SubscriptionStatus = Literal["active", "inactive", "cancelled", "past_due"]


def _check_absolute_url(value):
    if value is None:
        return value
    parts = urlsplit(value)
    if not parts.scheme or not parts.netloc:
        raise ValueError("URL absolue attendue (ex: https://exemple.com)")
    return value


AbsoluteUrl = Annotated[str, AfterValidator(_check_absolute_url)]


# --- USER SCHEMAS ---
class UserBase(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=50)
    display_name: Optional[str] = None
    avatar_url: Optional[AbsoluteUrl] = None
    bio: Optional[str] = Field(default=None, max_length=200)
    theme: Theme = "light"


class UserCreate(UserBase):
    pass


class UserUpdate(BaseModel):
    # Les champs absents ne sont pas touchés ; `null` efface un champ optionnel
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    display_name: Optional[str] = None
    avatar_url: Optional[AbsoluteUrl] = None
    bio: Optional[str] = Field(default=None, max_length=200)
    theme: Optional[Theme] = None


class UserResponse(BaseModel):
    id: str
    email: str
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    theme: Theme
    is_premium: bool = False
    subscription_id: Optional[str] = None
    subscription_status: Optional[SubscriptionStatus] = None
    email_verified: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- LINK SCHEMAS ---
class LinkCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    url: AbsoluteUrl
    icon: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=200)
    order_index: Optional[int] = Field(default=None, ge=0)


class LinkUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    url: Optional[AbsoluteUrl] = None
    icon: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=200)
    order_index: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class LinkResponse(BaseModel):
    id: str
    user_id: str
    title: str
    url: str
    icon: Optional[str] = None
    description: Optional[str] = None
    order_index: int
    is_active: bool
    click_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LinkOrder(BaseModel):
    id: str
    order_index: int = Field(ge=0)


class ReorderRequest(BaseModel):
    link_orders: List[LinkOrder] = []


class UserLimits(BaseModel):
    can_create_link: bool
    link_count: int
    max_links: int  # -1 = illimité
    is_premium: bool

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_status(cls, status):
        return cls(
            can_create_link=status.can_create_link,
            link_count=status.link_count,
            max_links=status.max_links.to_wire(),
            is_premium=status.is_premium,
        )


# --- CLICK / ANALYTICS SCHEMAS ---
class ClickCreate(BaseModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None


class LinkClickResponse(BaseModel):
    id: str
    link_id: str
    user_id: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    country: Optional[str] = None
    clicked_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PageAnalyticsResponse(BaseModel):
    id: str
    user_id: str
    page_views: int
    total_clicks: int
    unique_visitors: int
    date: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- BILLING SCHEMAS ---
class SubscriptionCreate(BaseModel):
    user_id: str
    external_reference: Optional[str] = None
    status: SubscriptionStatus


class SubscriptionStatusUpdate(BaseModel):
    user_id: str
    status: SubscriptionStatus


class SubscriptionResponse(BaseModel):
    id: str
    user_id: str
    external_reference: Optional[str] = None
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
