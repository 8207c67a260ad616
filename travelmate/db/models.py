import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional
from uuid import UUID as PyUUID

from sqlmodel import SQLModel, Field
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    Index,
    Text,
    UniqueConstraint,
    text,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_column(enum_cls, name: str, nullable: bool = False, **kwargs) -> Column:
    """Enum column persisted by value (e.g. "Pending", "trip")"""
    return Column(
        SAEnum(
            enum_cls,
            name=name,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        nullable=nullable,
        **kwargs,
    )


# Enums
class ItemType(str, Enum):
    """Reviewable item kinds"""
    ACTIVITY = "activity"
    STAY = "stay"
    TRIP = "trip"
    RENTAL = "rental"
    RESTAURANT = "restaurant"

class EntityType(str, Enum):
    """Kinds an image may be attached to"""
    TRIP = "trip"
    ACTIVITY = "activity"
    RESTAURANT = "restaurant"
    STAY = "stay"
    RENTAL = "rental"
    DESTINATION = "destination"
    USER = "user"
    REVIEW = "review"

class BookingType(str, Enum):
    TRIP = "Trip"
    RESTAURANT = "Restaurant"
    RENTAL = "Rental"
    ACTIVITY = "Activity"
    STAY = "Stay"

class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"
    REFUNDED = "Refunded"

class PaymentMethod(str, Enum):
    CREDIT_CARD = "Credit Card"
    PAYPAL = "PayPal"
    BANK_TRANSFER = "Bank Transfer"
    OTHER = "Other"

class PaymentStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    REFUNDED = "Refunded"

class StoreAdminRequest(str, Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class TripCategory(str, Enum):
    ADVENTURE = "Adventure"
    CULTURAL = "Cultural"
    RELAXATION = "Relaxation"
    BUSINESS = "Business"
    HONEYMOON = "Honeymoon"
    FAMILY = "Family"
    SOLO = "Solo"
    GROUP = "Group"
    LUXURY = "Luxury"
    BUDGET = "Budget"

class TripDifficulty(str, Enum):
    EASY = "Easy"
    MODERATE = "Moderate"
    CHALLENGING = "Challenging"
    EXPERT = "Expert"


# Base models with common fields
class TimestampedModel(SQLModel):
    """Base model with identity and audit timestamps"""

    id: PyUUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"onupdate": utcnow},
        nullable=False,
    )


class CatalogItem(TimestampedModel):
    """Fields shared by every catalog listing"""

    owner_id: Optional[PyUUID] = Field(
        default=None,
        foreign_key="users.id",
        index=True,
        description="Store admin who created the listing"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=2000,
    )
    primary_image_id: Optional[PyUUID] = Field(
        default=None,
        description="Image shown first for this listing"
    )


class ReviewableItem(CatalogItem):
    """Catalog listing that can be reviewed and booked"""

    destination_id: Optional[PyUUID] = Field(
        default=None,
        foreign_key="destinations.id",
        ondelete="SET NULL",
        index=True,
    )
    location: Optional[str] = Field(default=None, max_length=200)
    # Written only by the rating aggregator
    average_rating: float = Field(
        default=0.0,
        ge=0,
        le=5,
        description="Mean review rating rounded to one decimal"
    )


# Models
class User(TimestampedModel, table=True):
    __tablename__ = "users"

    __table_args__ = (
        Index('idx_users_store_admin_request', 'store_admin_request'),
        CheckConstraint('length(username) >= 3', name='check_username_length'),
    )

    username: str = Field(
        index=True,
        unique=True,
        nullable=False,
        max_length=50,
        description="Unique username for login"
    )
    email: str = Field(
        index=True,
        unique=True,
        nullable=False,
        max_length=255,
    )
    password_hash: str = Field(nullable=False, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=30, unique=True)
    is_admin: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    store_admin_request: StoreAdminRequest = Field(
        default=StoreAdminRequest.NONE,
        sa_column=enum_column(StoreAdminRequest, "storeadminrequest"),
    )
    profile_image_id: Optional[PyUUID] = Field(default=None)

    @property
    def is_store_admin(self) -> bool:
        """Admins and approved store owners may publish listings"""
        return self.is_admin or self.store_admin_request == StoreAdminRequest.APPROVED


class Destination(CatalogItem, table=True):
    __tablename__ = "destinations"

    __table_args__ = (
        Index('idx_destinations_country', 'country'),
        CheckConstraint('latitude IS NULL OR latitude BETWEEN -90 AND 90', name='check_valid_latitude'),
        CheckConstraint('longitude IS NULL OR longitude BETWEEN -180 AND 180', name='check_valid_longitude'),
    )

    name: str = Field(max_length=200, unique=True, index=True)
    country: str = Field(max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class Trip(ReviewableItem, table=True):
    __tablename__ = "trips"

    __table_args__ = (
        Index('idx_trips_category', 'category'),
        Index('idx_trips_price', 'price'),
        Index('idx_trips_average_rating', 'average_rating'),
        CheckConstraint('price >= 0', name='check_trip_price'),
    )

    title: str = Field(max_length=200)
    duration: str = Field(max_length=100, description="Human readable duration, e.g. '5 days'")
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    original_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    discount: Optional[float] = Field(default=None, ge=0, le=100)
    category: TripCategory = Field(
        default=TripCategory.CULTURAL,
        sa_column=enum_column(TripCategory, "tripcategory"),
    )
    sub_categories: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    difficulty: TripDifficulty = Field(
        default=TripDifficulty.EASY,
        sa_column=enum_column(TripDifficulty, "tripdifficulty"),
    )
    highlights: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    tag: Optional[str] = Field(default=None, max_length=100)


class Stay(ReviewableItem, table=True):
    __tablename__ = "stays"

    __table_args__ = (
        Index('idx_stays_average_rating', 'average_rating'),
    )

    name: str = Field(max_length=200)
    type: str = Field(max_length=100, description="Hotel, Homestay, Hostel, ...")
    amenities: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    rooms: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="Room inventory: roomType, price, capacity, available"
    )
    price_per_night: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    policies: Optional[str] = Field(default=None, max_length=2000)
    available_from: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    available_to: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class Restaurant(ReviewableItem, table=True):
    __tablename__ = "restaurants"

    __table_args__ = (
        Index('idx_restaurants_average_rating', 'average_rating'),
    )

    name: str = Field(max_length=200)
    cuisines: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    menu: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    opening_hours: Optional[str] = Field(default=None, max_length=500)
    average_cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    contact_info: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))


class Rental(ReviewableItem, table=True):
    __tablename__ = "rentals"

    __table_args__ = (
        Index('idx_rentals_type', 'type'),
        Index('idx_rentals_average_rating', 'average_rating'),
    )

    type: str = Field(max_length=100, description="Bike, Car, Scooter, ...")
    brand: Optional[str] = Field(default=None, max_length=100)
    model: Optional[str] = Field(default=None, max_length=100)
    price_per_hour: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    price_per_day: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    available_from: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    available_to: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    features: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))


class Activity(ReviewableItem, table=True):
    __tablename__ = "activities"

    __table_args__ = (
        Index('idx_activities_type', 'type'),
        Index('idx_activities_average_rating', 'average_rating'),
        CheckConstraint('cost IS NULL OR cost >= 0', name='check_activity_cost'),
    )

    name: str = Field(max_length=200)
    type: str = Field(max_length=100, description="Water, Land, Air, ...")
    difficulty: Optional[str] = Field(default=None, max_length=50)
    cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    available_dates: Optional[List[str]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="ISO dates the activity runs on"
    )
    safety_info: Optional[str] = Field(default=None, max_length=1000)


class Review(TimestampedModel, table=True):
    __tablename__ = "reviews"

    __table_args__ = (
        UniqueConstraint('user_id', 'item_type', 'item_id', name='uq_reviews_user_item'),
        Index('idx_reviews_item', 'item_type', 'item_id'),
        Index('idx_reviews_created_at', 'created_at'),
        CheckConstraint('rating >= 1 AND rating <= 5', name='check_valid_rating'),
    )

    user_id: PyUUID = Field(
        foreign_key="users.id",
        nullable=False,
        index=True,
        description="Reviewer"
    )
    item_type: ItemType = Field(
        sa_column=enum_column(ItemType, "itemtype"),
        description="Kind of the reviewed item"
    )
    item_id: PyUUID = Field(nullable=False, description="Reviewed item, resolved through item_type")
    rating: int = Field(ge=1, le=5, description="Rating (1-5 stars)")
    comment: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    images: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Ordered image ids"
    )


class Booking(TimestampedModel, table=True):
    __tablename__ = "bookings"

    # Exactly one kind reference per booking
    TARGET_COLUMNS: ClassVar[Dict[BookingType, str]] = {
        BookingType.TRIP: "trip_id",
        BookingType.RESTAURANT: "restaurant_id",
        BookingType.RENTAL: "rental_id",
        BookingType.ACTIVITY: "activity_id",
        BookingType.STAY: "stay_id",
    }

    __table_args__ = (
        Index('idx_bookings_user_status', 'user_id', 'status'),
        Index('idx_bookings_type_status', 'booking_type', 'status'),
        CheckConstraint('total_price >= 0', name='check_valid_total_price'),
        CheckConstraint(
            "(CASE WHEN trip_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN restaurant_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN rental_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN activity_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN stay_id IS NULL THEN 0 ELSE 1 END) = 1",
            name='check_single_booking_target',
        ),
    )

    user_id: PyUUID = Field(
        foreign_key="users.id",
        nullable=False,
        index=True,
        description="User who made the booking"
    )
    booking_type: BookingType = Field(sa_column=enum_column(BookingType, "bookingtype"))
    trip_id: Optional[PyUUID] = Field(default=None, index=True)
    restaurant_id: Optional[PyUUID] = Field(default=None, index=True)
    rental_id: Optional[PyUUID] = Field(default=None, index=True)
    activity_id: Optional[PyUUID] = Field(default=None, index=True)
    stay_id: Optional[PyUUID] = Field(default=None, index=True)
    booking_date: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )
    status: BookingStatus = Field(
        default=BookingStatus.PENDING,
        sa_column=enum_column(BookingStatus, "bookingstatus"),
    )
    total_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    payment_details: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="payment_method, transaction_id, payment_status"
    )
    details: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="Kind-specific payload (reservation, stay_details, ...)"
    )

    @property
    def target_id(self) -> Optional[PyUUID]:
        column = self.TARGET_COLUMNS.get(self.booking_type)
        return getattr(self, column) if column else None

    def set_target(self, booking_type: BookingType, item_id: PyUUID) -> None:
        """Point the booking at a single item, clearing every other reference"""
        for column in self.TARGET_COLUMNS.values():
            setattr(self, column, None)
        self.booking_type = booking_type
        setattr(self, self.TARGET_COLUMNS[booking_type], item_id)

    def check_target(self) -> None:
        populated = [
            kind for kind, column in self.TARGET_COLUMNS.items()
            if getattr(self, column) is not None
        ]
        if len(populated) != 1:
            raise ValueError(
                f"Booking must reference exactly one item, found {len(populated)}"
            )
        if populated[0] != self.booking_type:
            raise ValueError(
                f"Booking type {self.booking_type.value} does not match "
                f"the populated {populated[0].value} reference"
            )


class Image(TimestampedModel, table=True):
    __tablename__ = "images"

    __table_args__ = (
        Index('idx_images_entity', 'entity_type', 'entity_id'),
        Index('idx_images_created_at', 'created_at'),
        # One primary image per entity
        Index(
            'uq_images_primary_per_entity',
            'entity_type',
            'entity_id',
            unique=True,
            postgresql_where=text('is_primary'),
            sqlite_where=text('is_primary = 1'),
        ),
        CheckConstraint('size >= 0', name='check_valid_size'),
    )

    original_name: str = Field(max_length=255)
    mimetype: str = Field(max_length=100)
    size: int = Field(ge=0, description="Payload size in bytes")
    data: str = Field(sa_column=Column(Text, nullable=False), description="Base64 encoded payload")
    uploaded_by: PyUUID = Field(foreign_key="users.id", nullable=False, index=True)
    entity_type: EntityType = Field(sa_column=enum_column(EntityType, "entitytype"))
    entity_id: PyUUID = Field(nullable=False)
    is_primary: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    description: Optional[str] = Field(default=None, max_length=500)

    @property
    def url(self) -> str:
        return f"/api/v1/images/{self.id}"
