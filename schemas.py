"""
Database Schemas for the Pharmacos Manager admin API

Each Pydantic model maps to a MongoDB collection (lowercased class name).
Account and Customer validate documents written by the auth routes. The
remaining models describe collections written by other services; this API
only reads them, and the test suite builds its fixtures through them.

Collections:
- account
- customer
- staff
- brand
- category
- product
- order
- orderdetail
"""
from datetime import datetime
from typing import Dict, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal["admin", "staff", "customer"]
CustomerStatus = Literal["active", "blocked"]
ProductFunction = Literal["lotion", "wash", "cream", "serum", "mask", "other"]
SkinGroup = Literal["oily", "dry", "combination", "sensitive", "normal"]
GenderTarget = Literal["male", "female", "unisex"]

COMPLETED = "completed"


class Account(BaseModel):
    """
    Accounts collection schema
    Collection name: "account"
    """
    username: str = Field(..., min_length=3, description="Unique login name")
    password: str = Field(..., description="BCrypt password hash")
    role: Role = Field(..., description="admin | staff | customer")
    isVerified: bool = Field(False, description="Email confirmed")
    verificationToken: Optional[str] = None
    verificationExpires: Optional[datetime] = None


class Customer(BaseModel):
    """
    Customers collection schema
    Collection name: "customer"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    accountId: Optional[ObjectId] = None
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    phone: Optional[str] = None
    gender: Optional[str] = None
    dateOfBirth: Optional[datetime] = None
    address: Optional[str] = None
    skinType: Optional[str] = None
    status: CustomerStatus = Field("active", description="active | blocked")


class Staff(BaseModel):
    """
    Staff collection schema
    Collection name: "staff"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    accountId: Optional[ObjectId] = None
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    position: Optional[str] = None


class Brand(BaseModel):
    name: str
    description: Optional[str] = None


class Category(BaseModel):
    name: str
    description: Optional[str] = None


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., description="Product name")
    function: ProductFunction
    skinGroup: SkinGroup
    ageGroup: Optional[str] = None
    genderTarget: Optional[GenderTarget] = None
    brandId: ObjectId = Field(..., description="Reference to brand")
    categoryId: ObjectId = Field(..., description="Reference to category")
    imageUrl: Optional[str] = None
    stockQuantity: int = Field(0, ge=0, description="Units in stock")
    aiFeatures: Dict[str, str] = Field(default_factory=dict, description="AI-derived feature labels")


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    customerId: ObjectId
    staffId: Optional[ObjectId] = None
    orderDate: datetime
    totalAmount: float = Field(..., ge=0)
    status: str = Field("pending", description="pending | processing | completed | cancelled")


class OrderDetail(BaseModel):
    """
    Order line items
    Collection name: "orderdetail"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    orderId: ObjectId
    productId: ObjectId
    quantity: int = Field(..., ge=1)
    unitPrice: float = Field(..., ge=0)
