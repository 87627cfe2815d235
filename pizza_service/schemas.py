"""
Pydantic Schemas for Request/Response Validation

Field names are snake_case in Python and camelCase on the wire
(``franchiseId``, ``objectId``, ``totalRevenue``...). Responses never carry
a password or password hash.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pizza_service.core.policy import Role


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, populated by either name."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# USERS & AUTH
# =============================================================================

class RoleOut(CamelModel):
    role: Role
    object_id: Optional[int] = None


class RoleAssignment(CamelModel):
    """
    Role requested at user creation.
    
    For franchisees ``object`` names the franchise; it is resolved to the
    franchise id when the role-binding row is written.
    """
    role: Role
    object: Optional[str] = None


class UserOut(CamelModel):
    id: int
    name: str
    email: str
    roles: List[RoleOut] = Field(default_factory=list)


class RegisterRequest(CamelModel):
    name: Optional[str] = Field(None, max_length=255, examples=["pizza diner"])
    email: Optional[str] = Field(None, max_length=255, examples=["d@jwt.com"])
    password: Optional[str] = Field(None, examples=["diner"])


class LoginRequest(CamelModel):
    email: str = Field(..., examples=["d@jwt.com"])
    password: str = Field(..., examples=["diner"])


class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = None


class AuthResponse(CamelModel):
    user: UserOut
    token: str


class UserListResponse(CamelModel):
    users: List[UserOut]
    more: bool


# =============================================================================
# MENU
# =============================================================================

class MenuItemCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255, examples=["Veggie"])
    description: Optional[str] = Field(None, max_length=255, examples=["A garden of delight"])
    image: Optional[str] = Field(None, examples=["pizza1.png"])
    price: float = Field(0.0, ge=0, examples=[0.0038])


class MenuItemOut(MenuItemCreate):
    id: int


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemIn(CamelModel):
    menu_id: int = Field(..., examples=[1])
    description: str = Field(..., examples=["Veggie"])
    price: float = Field(..., ge=0, examples=[0.05])


class OrderItemOut(OrderItemIn):
    id: Optional[int] = None


class OrderCreate(CamelModel):
    franchise_id: int = Field(..., examples=[1])
    store_id: int = Field(..., examples=[1])
    items: List[OrderItemIn] = Field(default_factory=list)


class OrderOut(CamelModel):
    id: int
    franchise_id: int
    store_id: int
    date: Optional[datetime] = None
    items: List[OrderItemOut] = Field(default_factory=list)


class OrderHistory(CamelModel):
    diner_id: int
    orders: List[OrderOut]
    page: int


class OrderPlacedResponse(CamelModel):
    order: OrderOut
    follow_link_to_end_chaos: Optional[str] = None
    jwt: Optional[str] = None


# =============================================================================
# FRANCHISES & STORES
# =============================================================================

class FranchiseAdminIn(CamelModel):
    email: str = Field(..., examples=["f@jwt.com"])


class FranchiseAdminOut(CamelModel):
    id: int
    name: str
    email: str


class StoreCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["SLC"])


class StoreOut(CamelModel):
    id: int
    name: str
    franchise_id: Optional[int] = None
    total_revenue: Optional[float] = None


class FranchiseCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["pizzaPocket"])
    admins: List[FranchiseAdminIn] = Field(default_factory=list)


class FranchiseOut(CamelModel):
    id: int
    name: str
    admins: Optional[List[FranchiseAdminOut]] = None
    stores: List[StoreOut] = Field(default_factory=list)


class FranchiseListResponse(CamelModel):
    franchises: List[FranchiseOut]
    more: bool


# =============================================================================
# GENERIC
# =============================================================================

class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    fulfillment_service: str
    fulfillment_status: str
    timestamp: datetime
