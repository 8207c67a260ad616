from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal

# Import enums from models
from travelmate.db.models import (
    BookingStatus,
    BookingType,
    EntityType,
    ItemType,
    PaymentMethod,
    PaymentStatus,
    StoreAdminRequest,
    TripCategory,
    TripDifficulty,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ===== USER SCHEMAS =====

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, description="Password must be at least 6 characters long")
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=30)

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        if not v or not v.strip():
            raise ValueError("Username cannot be empty")
        return v.strip().lower()

class UserRead(ORMModel):
    id: UUID
    username: str
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    is_admin: bool
    store_admin_request: StoreAdminRequest
    is_store_admin: bool
    profile_image_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=30)
    password: Optional[str] = Field(None, min_length=6)

class AdminUserUpdate(UserUpdate):
    is_admin: Optional[bool] = None
    store_admin_request: Optional[StoreAdminRequest] = None

class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., description="Refresh token")

class MessageResponse(BaseModel):
    message: str

# ===== CATALOG SCHEMAS =====

class CatalogRead(ORMModel):
    id: UUID
    owner_id: Optional[UUID] = None
    description: Optional[str] = None
    primary_image_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

class ReviewableRead(CatalogRead):
    destination_id: Optional[UUID] = None
    location: Optional[str] = None
    average_rating: float

class ReviewableWrite(BaseModel):
    description: Optional[str] = Field(None, max_length=2000)
    destination_id: Optional[UUID] = None
    location: Optional[str] = Field(None, max_length=200)

class DestinationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    country: str = Field(..., min_length=1, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

class DestinationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    country: Optional[str] = Field(None, min_length=1, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

class DestinationRead(CatalogRead):
    name: str
    country: str
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

class TripCreate(ReviewableWrite):
    title: str = Field(..., min_length=1, max_length=200)
    duration: str = Field(..., max_length=100)
    price: Decimal = Field(..., ge=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    discount: Optional[float] = Field(None, ge=0, le=100)
    category: TripCategory = TripCategory.CULTURAL
    sub_categories: Optional[List[str]] = None
    difficulty: TripDifficulty = TripDifficulty.EASY
    highlights: Optional[List[str]] = None
    tag: Optional[str] = Field(None, max_length=100)

class TripUpdate(ReviewableWrite):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    duration: Optional[str] = Field(None, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    discount: Optional[float] = Field(None, ge=0, le=100)
    category: Optional[TripCategory] = None
    sub_categories: Optional[List[str]] = None
    difficulty: Optional[TripDifficulty] = None
    highlights: Optional[List[str]] = None
    tag: Optional[str] = Field(None, max_length=100)

class TripRead(ReviewableRead):
    title: str
    duration: str
    price: Decimal
    original_price: Optional[Decimal] = None
    discount: Optional[float] = None
    category: TripCategory
    sub_categories: Optional[List[str]] = None
    difficulty: TripDifficulty
    highlights: Optional[List[str]] = None
    tag: Optional[str] = None

class Room(BaseModel):
    room_type: str
    price: Decimal = Field(..., ge=0)
    capacity: int = Field(..., ge=1)
    available: bool = True

class StayCreate(ReviewableWrite):
    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., max_length=100)
    amenities: Optional[List[str]] = None
    rooms: Optional[List[Room]] = None
    price_per_night: Optional[Decimal] = Field(None, ge=0)
    policies: Optional[str] = Field(None, max_length=2000)
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None

class StayUpdate(ReviewableWrite):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[str] = Field(None, max_length=100)
    amenities: Optional[List[str]] = None
    rooms: Optional[List[Room]] = None
    price_per_night: Optional[Decimal] = Field(None, ge=0)
    policies: Optional[str] = Field(None, max_length=2000)
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None

class StayRead(ReviewableRead):
    name: str
    type: str
    amenities: Optional[List[str]] = None
    rooms: Optional[List[Dict[str, Any]]] = None
    price_per_night: Optional[Decimal] = None
    policies: Optional[str] = None
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None

class MenuItem(BaseModel):
    name: str
    price: Decimal = Field(..., ge=0)

class RestaurantCreate(ReviewableWrite):
    name: str = Field(..., min_length=1, max_length=200)
    cuisines: Optional[List[str]] = None
    menu: Optional[List[MenuItem]] = None
    opening_hours: Optional[str] = Field(None, max_length=500)
    average_cost: Optional[Decimal] = Field(None, ge=0)
    contact_info: Optional[Dict[str, Any]] = None

class RestaurantUpdate(ReviewableWrite):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    cuisines: Optional[List[str]] = None
    menu: Optional[List[MenuItem]] = None
    opening_hours: Optional[str] = Field(None, max_length=500)
    average_cost: Optional[Decimal] = Field(None, ge=0)
    contact_info: Optional[Dict[str, Any]] = None

class RestaurantRead(ReviewableRead):
    name: str
    cuisines: Optional[List[str]] = None
    menu: Optional[List[Dict[str, Any]]] = None
    opening_hours: Optional[str] = None
    average_cost: Optional[Decimal] = None
    contact_info: Optional[Dict[str, Any]] = None

class RentalCreate(ReviewableWrite):
    type: str = Field(..., min_length=1, max_length=100)
    brand: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    price_per_hour: Optional[Decimal] = Field(None, ge=0)
    price_per_day: Optional[Decimal] = Field(None, ge=0)
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None
    features: Optional[List[str]] = None

class RentalUpdate(ReviewableWrite):
    type: Optional[str] = Field(None, min_length=1, max_length=100)
    brand: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    price_per_hour: Optional[Decimal] = Field(None, ge=0)
    price_per_day: Optional[Decimal] = Field(None, ge=0)
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None
    features: Optional[List[str]] = None

class RentalRead(ReviewableRead):
    type: str
    brand: Optional[str] = None
    model: Optional[str] = None
    price_per_hour: Optional[Decimal] = None
    price_per_day: Optional[Decimal] = None
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None
    features: Optional[List[str]] = None

class ActivityCreate(ReviewableWrite):
    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., max_length=100)
    difficulty: Optional[str] = Field(None, max_length=50)
    cost: Optional[Decimal] = Field(None, ge=0)
    available_dates: Optional[List[date]] = None
    safety_info: Optional[str] = Field(None, max_length=1000)

class ActivityUpdate(ReviewableWrite):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[str] = Field(None, max_length=100)
    difficulty: Optional[str] = Field(None, max_length=50)
    cost: Optional[Decimal] = Field(None, ge=0)
    available_dates: Optional[List[date]] = None
    safety_info: Optional[str] = Field(None, max_length=1000)

class ActivityRead(ReviewableRead):
    name: str
    type: str
    difficulty: Optional[str] = None
    cost: Optional[Decimal] = None
    available_dates: Optional[List[str]] = None
    safety_info: Optional[str] = None

class DeleteResponse(BaseModel):
    message: str
    removed: Dict[str, int] = Field(default_factory=dict)

# ===== REVIEW SCHEMAS =====

class ReviewRead(ORMModel):
    id: UUID
    user_id: UUID
    item_type: ItemType
    item_id: UUID
    rating: int
    comment: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

class ReviewMutationResponse(BaseModel):
    """Review write result; rating_updated is False when the average is stale"""
    message: str
    review: Optional[ReviewRead] = None
    rating_updated: bool
    average_rating: Optional[float] = None

class CanReviewResponse(BaseModel):
    can_review: bool
    has_existing_review: bool
    existing_review: Optional[ReviewRead] = None

# ===== BOOKING SCHEMAS =====

class TravelDates(BaseModel):
    start_date: date
    end_date: date

class AccommodationChoice(BaseModel):
    type: Optional[str] = None
    room_type: Optional[str] = None

class TripDetails(BaseModel):
    travel_date: Optional[TravelDates] = None
    category: Optional[str] = None
    travelers: Optional[int] = Field(None, ge=1)
    booked_at_price: Optional[Decimal] = Field(None, ge=0)
    special_requests: Optional[str] = None
    accommodation: Optional[AccommodationChoice] = None
    transportation: Optional[str] = None
    meal_plan: Optional[str] = None
    insurance: Optional[bool] = None
    guide: Optional[bool] = None
    activities: Optional[List[str]] = None
    cancellation_policy: Optional[str] = None
    notes: Optional[str] = None

class Reservation(BaseModel):
    date: date
    time: str
    people: int = Field(..., ge=1)
    table: Optional[str] = None

class RentalDetails(BaseModel):
    start: datetime = Field(..., alias="from")
    end: datetime = Field(..., alias="to")
    extras: Optional[List[str]] = None

    model_config = ConfigDict(populate_by_name=True)

class ActivityDetails(BaseModel):
    date: date
    participants: int = Field(..., ge=1)

class StayDetails(BaseModel):
    check_in: date
    check_out: date
    room_type: Optional[str] = None
    guests: int = Field(1, ge=1)

class BookingTargetBase(BaseModel):
    """One variant per bookable kind, each with its own typed id field"""
    ID_FIELD: ClassVar[str]
    DETAILS_FIELD: ClassVar[str]

    @property
    def item_id(self) -> UUID:
        return getattr(self, self.ID_FIELD)

    def details_payload(self) -> Dict[str, Any]:
        details = getattr(self, self.DETAILS_FIELD)
        if details is None:
            return {}
        return {self.DETAILS_FIELD: details.model_dump(mode="json", by_alias=True, exclude_none=True)}

class TripBookingTarget(BookingTargetBase):
    ID_FIELD: ClassVar[str] = "trip_id"
    DETAILS_FIELD: ClassVar[str] = "trip_details"
    booking_type: Literal["Trip"]
    trip_id: UUID
    trip_details: Optional[TripDetails] = None

class RestaurantBookingTarget(BookingTargetBase):
    ID_FIELD: ClassVar[str] = "restaurant_id"
    DETAILS_FIELD: ClassVar[str] = "reservation"
    booking_type: Literal["Restaurant"]
    restaurant_id: UUID
    reservation: Reservation

class RentalBookingTarget(BookingTargetBase):
    ID_FIELD: ClassVar[str] = "rental_id"
    DETAILS_FIELD: ClassVar[str] = "rental_details"
    booking_type: Literal["Rental"]
    rental_id: UUID
    rental_details: RentalDetails

class ActivityBookingTarget(BookingTargetBase):
    ID_FIELD: ClassVar[str] = "activity_id"
    DETAILS_FIELD: ClassVar[str] = "activity_details"
    booking_type: Literal["Activity"]
    activity_id: UUID
    activity_details: ActivityDetails

class StayBookingTarget(BookingTargetBase):
    ID_FIELD: ClassVar[str] = "stay_id"
    DETAILS_FIELD: ClassVar[str] = "stay_details"
    booking_type: Literal["Stay"]
    stay_id: UUID
    stay_details: StayDetails

BookingTarget = Annotated[
    Union[
        TripBookingTarget,
        RestaurantBookingTarget,
        RentalBookingTarget,
        ActivityBookingTarget,
        StayBookingTarget,
    ],
    Field(discriminator="booking_type"),
]

class PaymentDetails(BaseModel):
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None

class BookingCreate(BaseModel):
    target: BookingTarget
    total_price: Decimal = Field(..., ge=0)
    status: Optional[BookingStatus] = None
    payment_details: Optional[PaymentDetails] = None
    user_id: Optional[UUID] = Field(None, description="Book on behalf of another user (admin only)")

class BookingUpdate(BaseModel):
    target: Optional[BookingTarget] = None
    total_price: Optional[Decimal] = Field(None, ge=0)
    status: Optional[BookingStatus] = None
    payment_details: Optional[PaymentDetails] = None

class BookingRead(ORMModel):
    id: UUID
    user_id: UUID
    booking_type: BookingType
    target_id: Optional[UUID] = None
    trip_id: Optional[UUID] = None
    restaurant_id: Optional[UUID] = None
    rental_id: Optional[UUID] = None
    activity_id: Optional[UUID] = None
    stay_id: Optional[UUID] = None
    booking_date: datetime
    status: BookingStatus
    total_price: Decimal
    payment_details: Dict[str, Any] = Field(default_factory=dict)
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

class PaymentRequest(BaseModel):
    booking_id: UUID
    payment_method: PaymentMethod
    amount: Optional[Decimal] = Field(None, ge=0)

class PaymentResponse(BaseModel):
    success: bool
    transaction_id: str
    booking: BookingRead

# ===== IMAGE SCHEMAS =====

class ImageRead(ORMModel):
    """Image metadata; the payload is served by GET /images/{id}"""
    id: UUID
    original_name: str
    mimetype: str
    size: int
    uploaded_by: UUID
    entity_type: EntityType
    entity_id: UUID
    is_primary: bool
    tags: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    url: str
    created_at: datetime


class ImageUpdate(BaseModel):
    is_primary: Optional[bool] = None
    tags: Optional[List[str]] = None
    description: Optional[str] = Field(None, max_length=500)
