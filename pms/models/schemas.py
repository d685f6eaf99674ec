"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pms.models.ontology import UserRole, RoomStatus, ReservationStatus
from pms.security.permissions import MODULE_IDS


# ============== 认证 Schemas ==============

class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole
    branch_id: Optional[int] = None
    is_active: bool = True
    last_login: Optional[datetime] = None
    custom_permissions: Optional[Dict[str, Dict[str, bool]]] = None
    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    role: UserRole = UserRole.FRONT_DESK
    branch_id: Optional[int] = None


# ============== 自定义角色 Schemas ==============

class PermissionTriple(BaseModel):
    read: bool = False
    write: bool = False
    delete: bool = False


class RolePermissionInput(BaseModel):
    module: str
    permissions: PermissionTriple

    @field_validator("module")
    @classmethod
    def module_in_catalog(cls, v: str) -> str:
        if v not in MODULE_IDS:
            raise ValueError(f"Unknown module '{v}'")
        return v


class RolePermissionsReplace(BaseModel):
    """整体替换角色权限；允许空列表（清空）"""
    permissions: List[RolePermissionInput] = []

    @model_validator(mode="after")
    def unique_modules(self):
        seen = set()
        for item in self.permissions:
            if item.module in seen:
                raise ValueError(f"Duplicate module '{item.module}'")
            seen.add(item.module)
        return self


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field("", max_length=500)
    is_active: bool = True
    permissions: List[RolePermissionInput] = []

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Role name is required")
        return v.strip()


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


class RolePermissionResponse(BaseModel):
    id: int
    role_id: int
    module: str
    permissions: Dict[str, bool]
    model_config = ConfigDict(from_attributes=True)


class RoleResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class RoleDetailResponse(RoleResponse):
    permissions: List[RolePermissionResponse] = []


class ModuleInfo(BaseModel):
    id: str
    name: str
    description: str


class UserRoleAssign(BaseModel):
    role_ids: List[int] = []


# ============== 分店 Schemas ==============

class BranchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)


class BranchResponse(BranchCreate):
    id: int
    is_active: bool
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 房型/房间 Schemas ==============

class RoomTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    base_price: Decimal = Field(..., ge=0)
    max_occupancy: int = Field(default=2, ge=1)
    branch_id: Optional[int] = None


class RoomTypeResponse(RoomTypeCreate):
    id: int
    model_config = ConfigDict(from_attributes=True)


class RoomCreate(BaseModel):
    number: str = Field(..., min_length=1, max_length=20)
    floor: Optional[int] = None
    room_type_id: int
    branch_id: Optional[int] = None


class RoomResponse(BaseModel):
    id: int
    number: str
    floor: Optional[int] = None
    room_type_id: int
    branch_id: int
    status: RoomStatus
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class RoomStatusUpdate(BaseModel):
    status: RoomStatus


# ============== 客人 Schemas ==============

class GuestCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    nationality: Optional[str] = Field(None, max_length=100)
    branch_id: Optional[int] = None


class GuestResponse(GuestCreate):
    id: int
    branch_id: int
    reservation_count: int = 0
    model_config = ConfigDict(from_attributes=True)


# ============== 预订 Schemas ==============

class ReservationCreate(BaseModel):
    guest_id: int
    total_amount: Decimal = Field(..., ge=0)
    paid_amount: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None
    branch_id: Optional[int] = None


class ReservationResponse(BaseModel):
    id: int
    confirmation_number: str
    guest_id: int
    branch_id: int
    status: ReservationStatus
    total_amount: Decimal
    paid_amount: Optional[Decimal] = None
    notes: Optional[str] = None
    created_by_id: int
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ReservationStatusUpdate(BaseModel):
    status: ReservationStatus
