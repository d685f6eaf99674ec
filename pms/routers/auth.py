"""
认证路由
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pms.database import get_db
from pms.models.ontology import User
from pms.models.schemas import LoginRequest, LoginResponse, UserResponse
from pms.security.auth import create_access_token, get_current_user
from pms.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["认证"])


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """用户登录"""
    service = UserService(db)
    user = service.authenticate(data.email, data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )
    token = create_access_token(user.id, user.role, user.branch_id)
    return LoginResponse(
        access_token=token,
        user=UserResponse(**service.get_user_view(user)),
    )


@router.get("/user", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """获取当前用户（自定义角色用户附带聚合权限，每次请求重新计算）"""
    return UserResponse(**UserService(db).get_user_view(current_user))
