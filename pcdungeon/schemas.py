"""
Database Schemas for the PC Dungeon catalog

Each Pydantic model corresponds to a MongoDB collection. The collection name is the lowercase of the class name.

Example: class Component -> collection "component"

Request bodies for partial updates live next to their collection model and
are suffixed with ``Update``.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from pcdungeon import config

SLOTS = ("cpu", "gpu", "motherboard", "ram", "storage", "psu", "case", "cooling")

# Shared value objects

class Money(BaseModel):
    amount: float = Field(0, ge=0)
    currency: str = config.DEFAULT_CURRENCY


class Images(BaseModel):
    primary: Optional[str] = None
    gallery: List[str] = Field(default_factory=list)
    thumbnail: Optional[str] = None


class Ratings(BaseModel):
    average: float = Field(0, ge=0, le=5)
    count: int = Field(0, ge=0)


def _clean_tags(tags: List[str]) -> List[str]:
    return [t.strip().lower() for t in tags if t and t.strip()]


# Categories and their dynamic fields

class _FieldSpecBase(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    label: str = Field(..., min_length=1, max_length=200)
    required: bool = False
    help_text: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True


class TextFieldSpec(_FieldSpecBase):
    type: Literal["text", "textarea", "url", "email"]
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=1)
    pattern: Optional[str] = None


class NumberFieldSpec(_FieldSpecBase):
    type: Literal["number"]
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    unit: Optional[str] = None

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.min_value is not None and self.max_value is not None and self.min_value > self.max_value:
            raise ValueError("min_value cannot exceed max_value")
        return self


class SelectFieldSpec(_FieldSpecBase):
    type: Literal["select"]
    options: List[str] = Field(..., min_length=1)


class BooleanFieldSpec(_FieldSpecBase):
    type: Literal["boolean"]


CategoryField = Annotated[
    Union[TextFieldSpec, NumberFieldSpec, SelectFieldSpec, BooleanFieldSpec],
    Field(discriminator="type"),
]


class Category(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: str = "bg-gray-100 text-gray-800"
    icon: Optional[str] = None
    image_url: Optional[str] = None
    parent: Optional[str] = None
    fields: List[CategoryField] = Field(default_factory=list)
    required: bool = Field(False, description="Must be filled for a build to be complete")
    sort_order: int = 0
    is_active: bool = True

    @model_validator(mode="after")
    def _unique_field_names(self):
        seen = set()
        for f in self.fields:
            if f.name in seen:
                raise ValueError(f"Duplicate field name: {f.name}")
            seen.add(f.name)
        return self


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    image_url: Optional[str] = None
    parent: Optional[str] = None
    required: Optional[bool] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


# Components

class ComponentPricing(BaseModel):
    cost: Money = Field(default_factory=Money)
    individual_price: Money = Field(default_factory=Money)
    build_price: Money = Field(default_factory=Money)


class ComponentPricingUpdate(BaseModel):
    cost: Optional[Money] = None
    individual_price: Optional[Money] = None
    build_price: Optional[Money] = None


class ComponentAvailability(BaseModel):
    in_stock: bool = True
    stock_count: int = Field(0, ge=0)
    release_date: Optional[datetime] = None
    discontinued_date: Optional[datetime] = None


class ComponentCompatibility(BaseModel):
    incompatible_with: List[str] = Field(default_factory=list)


class Component(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: str
    brand: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    pricing: ComponentPricing
    description: Optional[str] = Field(None, max_length=2000)
    technical_specs: Dict[str, Any] = Field(default_factory=dict)
    images: Images = Field(default_factory=Images)
    availability: ComponentAvailability = Field(default_factory=ComponentAvailability)
    ratings: Ratings = Field(default_factory=Ratings)
    compatibility: ComponentCompatibility = Field(default_factory=ComponentCompatibility)
    tags: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    is_active: bool = True
    is_featured: bool = False
    sort_order: int = 0

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return _clean_tags(v)


class ComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = None
    brand: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    pricing: Optional[ComponentPricingUpdate] = None
    description: Optional[str] = Field(None, max_length=2000)
    technical_specs: Optional[Dict[str, Any]] = None
    images: Optional[Images] = None
    availability: Optional[ComponentAvailability] = None
    ratings: Optional[Ratings] = None
    compatibility: Optional[ComponentCompatibility] = None
    tags: Optional[List[str]] = None
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    sort_order: Optional[int] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return _clean_tags(v) if v is not None else v


# Pre-built PCs

class SlotSelection(BaseModel):
    component: Optional[str] = None
    name: Optional[str] = None
    price: float = Field(0, ge=0)


class PreBuildComponents(BaseModel):
    cpu: Optional[SlotSelection] = None
    gpu: Optional[SlotSelection] = None
    motherboard: Optional[SlotSelection] = None
    ram: Optional[SlotSelection] = None
    storage: Optional[SlotSelection] = None
    psu: Optional[SlotSelection] = None
    case: Optional[SlotSelection] = None
    cooling: Optional[SlotSelection] = None


class PreBuildPricing(BaseModel):
    assembly_fee: float = Field(0, ge=0)
    selling_price: float = Field(..., ge=0)
    currency: str = config.DEFAULT_CURRENCY


class PreBuildPricingUpdate(BaseModel):
    assembly_fee: Optional[float] = Field(None, ge=0)
    selling_price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None


class PreBuildAvailability(BaseModel):
    in_stock: bool = True
    stock_count: int = Field(0, ge=0)
    estimated_build_time: str = "3-5 business days"


class PreBuildPc(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: Literal["general", "powered-by-asus"] = "general"
    description: Optional[str] = Field(None, max_length=2000)
    components: PreBuildComponents = Field(default_factory=PreBuildComponents)
    pricing: PreBuildPricing
    images: Images = Field(default_factory=Images)
    availability: PreBuildAvailability = Field(default_factory=PreBuildAvailability)
    specifications: Dict[str, Any] = Field(default_factory=dict)
    ratings: Ratings = Field(default_factory=Ratings)
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True
    is_featured: bool = False
    sort_order: int = 0

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return _clean_tags(v)


class PreBuildPcUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[Literal["general", "powered-by-asus"]] = None
    description: Optional[str] = Field(None, max_length=2000)
    components: Optional[PreBuildComponents] = None
    pricing: Optional[PreBuildPricingUpdate] = None
    images: Optional[Images] = None
    availability: Optional[PreBuildAvailability] = None
    specifications: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    sort_order: Optional[int] = None


# User builds

BuildType = Literal["gaming", "office", "workstation", "budget", "high-end", "custom"]


class BuildSelection(BaseModel):
    category: str
    component: str
    quantity: int = Field(1, ge=1)


class UserBuild(BaseModel):
    name: str = Field(..., min_length=1)
    components: List[BuildSelection] = Field(default_factory=list)
    build_type: BuildType = "custom"
    is_public: bool = False
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


class UserBuildUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    components: Optional[List[BuildSelection]] = None
    build_type: Optional[BuildType] = None
    is_public: Optional[bool] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None


# Compatibility rules

class TagRule(BaseModel):
    source_tag: str = Field(..., min_length=1)
    target_tag: str = Field(..., min_length=1)
    compatible: bool = True

    @field_validator("source_tag", "target_tag")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class CompatibilityRule(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    source_category: str
    target_category: str
    rules: List[TagRule] = Field(default_factory=list)
    is_active: bool = True


class CompatibilityRuleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    source_category: Optional[str] = None
    target_category: Optional[str] = None
    rules: Optional[List[TagRule]] = None
    is_active: Optional[bool] = None


class CompatibilityCheckRequest(BaseModel):
    component_a: str
    component_b: str


# Products and suppliers

class SupplierOfferIn(BaseModel):
    supplier_id: str
    price: float = Field(..., ge=0)


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    category: Optional[str] = None
    description: Optional[str] = None
    status: str = "Available"
    image_url: Optional[str] = None
    source: Optional[str] = None
    suppliers: List[SupplierOfferIn] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    image_url: Optional[str] = None
    suppliers: Optional[List[SupplierOfferIn]] = None


class Supplier(BaseModel):
    name: str = Field(..., min_length=1)
    contact: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    website: Optional[str] = None
    location: Optional[str] = None


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    contact: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = Field(None, min_length=1)
    website: Optional[str] = None
    location: Optional[str] = None


class SupplierProductLink(BaseModel):
    product_id: str
    price: float = Field(..., ge=0)


class CommentIn(BaseModel):
    content: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)


class RatingIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = ""
    author: str = Field(..., min_length=1)


# Orders

ORDER_STATUSES = ("Pending", "Processing", "Completed", "Cancelled")
OrderStatus = Literal["Pending", "Processing", "Completed", "Cancelled"]


class Order(BaseModel):
    description: str = Field(..., min_length=1)
    product_id: str
    product_name: Optional[str] = None
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(0, ge=0)
    listed_price: float = Field(0, ge=0)
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None
    suppliers: List[SupplierOfferIn] = Field(default_factory=list)
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None


class OrderUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1)
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=1)
    unit_price: Optional[float] = Field(None, ge=0)
    listed_price: Optional[float] = Field(None, ge=0)
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None
    suppliers: Optional[List[SupplierOfferIn]] = None
    status: Optional[str] = None
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: str


# Sales

class Sale(BaseModel):
    product_name: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    customer: str = Field(..., min_length=1)
    status: Literal["completed", "pending", "cancelled"] = "completed"
    date: Optional[datetime] = None


# Settings

SettingType = Literal["string", "number", "boolean", "object", "array"]
SettingCategory = Literal["general", "currency", "tax", "display", "features"]


class SettingIn(BaseModel):
    value: Any
    type: SettingType
    description: Optional[str] = None
    category: SettingCategory = "general"


class Setting(SettingIn):
    key: str = Field(..., min_length=1)


class SettingsBulkUpdate(BaseModel):
    settings: List[Setting]


# Users and auth

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str
    confirm_password: str


# User administration

Role = Literal["admin", "sub-admin", "customer"]
UserStatus = Literal["active", "inactive", "suspended"]


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = "customer"
    status: UserStatus = "active"


class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    status: Optional[UserStatus] = None


class UserBulkUpdate(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)
    role: Optional[Role] = None
    status: Optional[UserStatus] = None

    @model_validator(mode="after")
    def has_changes(self):
        if self.role is None and self.status is None:
            raise ValueError("Provide a role or a status to apply")
        return self


# Visitors

VisitorStatus = Literal["pending", "checked-in", "checked-out"]


class VisitorIn(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Visitor name is required")
        return v


class VisitorStatusUpdate(BaseModel):
    status: VisitorStatus
