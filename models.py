import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from database import Base


def new_id():
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    display_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    bio = Column(String(200), nullable=True)
    theme = Column(String(10), nullable=False, default="light")  # 'light' | 'dark'
    # Seul le collaborateur de facturation (billing.py) écrit ce champ
    is_premium = Column(Boolean, nullable=False, default=False)
    subscription_id = Column(String(36), nullable=True)
    subscription_status = Column(String(20), nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    links = relationship(
        "Link", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True
    )
    subscriptions = relationship(
        "Subscription", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Link(Base):
    __tablename__ = "links"
    __table_args__ = (Index("ix_links_user_order", "user_id", "order_index"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    url = Column(Text, nullable=False)
    icon = Column(String, nullable=True)
    description = Column(String(200), nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    click_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    owner = relationship("User", back_populates="links")
    clicks = relationship(
        "LinkClick", back_populates="link", cascade="all, delete-orphan", passive_deletes=True
    )


class LinkClick(Base):
    __tablename__ = "link_clicks"
    id = Column(String(36), primary_key=True, default=new_id)
    link_id = Column(String(36), ForeignKey("links.id", ondelete="CASCADE"), nullable=False, index=True)
    # Copié depuis le lien au moment du clic
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    country = Column(String, nullable=True)
    clicked_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    link = relationship("Link", back_populates="clicks")


class Subscription(Base):
    __tablename__ = "subscriptions"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    external_reference = Column(String, nullable=True)
    status = Column(String(20), nullable=False)  # 'active' | 'inactive' | 'cancelled' | 'past_due'
    current_period_start = Column(DateTime, nullable=False)
    current_period_end = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User", back_populates="subscriptions")


class PageAnalytics(Base):
    __tablename__ = "page_analytics"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    page_views = Column(Integer, nullable=False, default=0)
    total_clicks = Column(Integer, nullable=False, default=0)
    unique_visitors = Column(Integer, nullable=False, default=0)
    date = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
