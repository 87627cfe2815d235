"""
FastAPI Application Entry Point

JWT Pizza Service - route layer over the pizza data-access layer.

Endpoints:
    - /api/auth: register, login, logout
    - /api/user: current user, profile update, user listing
    - /api/order: menu, order history, order placement
    - /api/franchise: franchises and their stores
    - GET /health: System health check

Every protected route reads ``Authorization: Bearer <token>``. A missing,
revoked or unverifiable token yields 401; a caller whose roles do not
cover the action yields 403.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pizza_service.core.config import get_settings, setup_logging
from pizza_service.core.errors import (
    BadRequestError,
    ForbiddenError,
    FulfillmentError,
    PizzaServiceError,
    UnauthenticatedError,
)
from pizza_service.core.policy import (
    Caller,
    Requirement,
    Role,
    administers,
    is_authorized,
    require,
)
from pizza_service.core.security import bearer_token, verify_token
from pizza_service.database import async_session_maker, engine, get_db, init_db
from pizza_service.repository import PizzaRepository
from pizza_service.schemas import (
    AuthResponse,
    FranchiseCreate,
    FranchiseListResponse,
    FranchiseOut,
    HealthResponse,
    LoginRequest,
    MenuItemCreate,
    MenuItemOut,
    MessageResponse,
    OrderCreate,
    OrderHistory,
    OrderPlacedResponse,
    RegisterRequest,
    RoleAssignment,
    StoreCreate,
    StoreOut,
    UserListResponse,
    UserOut,
    UserUpdate,
)
from pizza_service.services.fulfillment import BaseFulfillmentService, get_fulfillment_service

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    async with async_session_maker() as session:
        await PizzaRepository(session).ensure_default_admin(
            settings.default_admin_name,
            settings.default_admin_email,
            settings.default_admin_password,
        )
    logger.info("Database initialized")

    fulfillment = get_fulfillment_service()
    logger.info(f"Fulfillment Service: {fulfillment.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready")

    yield

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Pizza ordering backend: users, menu, franchises, stores and orders.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

async def get_repository(db: AsyncSession = Depends(get_db)) -> PizzaRepository:
    """Data-access layer bound to the request's session."""
    return PizzaRepository(db)


async def get_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    return bearer_token(authorization)


async def get_caller(
    token: Optional[str] = Depends(get_token),
    repo: PizzaRepository = Depends(get_repository),
) -> Optional[Caller]:
    """
    Resolve the caller behind the bearer token, if any.

    A token counts only if its signature is registered AND it verifies
    against the signing secret.
    """
    if not token:
        return None
    if not await repo.is_logged_in(token):
        return None
    try:
        claims = verify_token(token)
    except UnauthenticatedError:
        return None
    return Caller.from_claims(claims)


async def require_caller(caller: Optional[Caller] = Depends(get_caller)) -> Caller:
    if caller is None:
        raise UnauthenticatedError()
    return caller


def caller_as_user(caller: Caller) -> UserOut:
    return UserOut(
        id=caller.id,
        name=caller.name,
        email=caller.email,
        roles=[r.to_dict() for r in caller.roles],
    )


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    fulfillment: BaseFulfillmentService = Depends(get_fulfillment_service),
) -> HealthResponse:
    """Verify the database and the pizza factory are reachable."""
    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    fulfillment_healthy = await fulfillment.health_check()
    if not fulfillment_healthy:
        logger.warning(f"Fulfillment provider {fulfillment.provider_name} is unreachable")

    all_healthy = db_status == "healthy" and fulfillment_healthy
    return HealthResponse(
        status="operational" if all_healthy else "degraded",
        database=db_status,
        fulfillment_service=fulfillment.provider_name,
        fulfillment_status="healthy" if fulfillment_healthy else "unhealthy",
        timestamp=datetime.now(),
    )


# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

@app.post("/api/auth", response_model=AuthResponse, tags=["Auth"], summary="Register")
async def register(
    body: RegisterRequest,
    repo: PizzaRepository = Depends(get_repository),
) -> AuthResponse:
    if not (body.name and body.email and body.password):
        raise BadRequestError("name, email, and password are required")

    user = await repo.add_user(
        body.name,
        body.email,
        body.password,
        [RoleAssignment(role=Role.DINER)],
    )
    token = await repo.issue_token(user)
    return AuthResponse(user=user, token=token)


@app.put("/api/auth", response_model=AuthResponse, tags=["Auth"], summary="Login")
async def login(
    body: LoginRequest,
    repo: PizzaRepository = Depends(get_repository),
) -> AuthResponse:
    user = await repo.get_user(body.email, body.password)
    token = await repo.issue_token(user)
    logger.info(f"User #{user.id} logged in")
    return AuthResponse(user=user, token=token)


@app.delete("/api/auth", response_model=MessageResponse, tags=["Auth"], summary="Logout")
async def logout(
    caller: Caller = Depends(require_caller),
    token: Optional[str] = Depends(get_token),
    repo: PizzaRepository = Depends(get_repository),
) -> MessageResponse:
    await repo.logout_user(token)
    logger.info(f"User #{caller.id} logged out")
    return MessageResponse(message="logout successful")


# =============================================================================
# USER ENDPOINTS
# =============================================================================

@app.get("/api/user/me", response_model=UserOut, tags=["Users"])
async def get_me(caller: Caller = Depends(require_caller)) -> UserOut:
    return caller_as_user(caller)


@app.put("/api/user/{user_id}", response_model=AuthResponse, tags=["Users"])
async def update_user(
    user_id: int,
    body: UserUpdate,
    caller: Caller = Depends(require_caller),
    repo: PizzaRepository = Depends(get_repository),
) -> AuthResponse:
    """Update a profile. Only the user themselves or an Admin may do this."""
    require(caller, Requirement.SELF, user_id)

    user = await repo.update_user(user_id, body.name, body.email, body.password)
    token = await repo.issue_token(user)
    return AuthResponse(user=user, token=token)


@app.get("/api/user", response_model=UserListResponse, tags=["Users"])
async def list_users(
    page: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    name: str = Query("*"),
    caller: Caller = Depends(require_caller),
    repo: PizzaRepository = Depends(get_repository),
) -> UserListResponse:
    """Admins page through every user; anyone else sees only themselves."""
    if not caller.is_admin:
        return UserListResponse(users=[await repo.get_user_by_id(caller.id)], more=False)

    users, more = await repo.list_users(page, limit, name)
    return UserListResponse(users=users, more=more)


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.get("/api/order/menu", response_model=list[MenuItemOut], tags=["Orders"])
async def get_menu(repo: PizzaRepository = Depends(get_repository)) -> list[MenuItemOut]:
    return await repo.get_menu()


@app.put("/api/order/menu", response_model=list[MenuItemOut], tags=["Orders"])
async def add_menu_item(
    body: MenuItemCreate,
    caller: Caller = Depends(require_caller),
    repo: PizzaRepository = Depends(get_repository),
) -> list[MenuItemOut]:
    require(caller, Requirement.ADMIN, message="unable to add menu item")

    await repo.add_menu_item(body)
    return await repo.get_menu()


@app.get("/api/order", response_model=OrderHistory, tags=["Orders"])
async def get_orders(
    page: int = Query(1, ge=1),
    caller: Caller = Depends(require_caller),
    repo: PizzaRepository = Depends(get_repository),
) -> OrderHistory:
    return await repo.get_orders(caller, page)


@app.post("/api/order", response_model=OrderPlacedResponse, tags=["Orders"])
async def create_order(
    body: OrderCreate,
    caller: Caller = Depends(require_caller),
    repo: PizzaRepository = Depends(get_repository),
    fulfillment: BaseFulfillmentService = Depends(get_fulfillment_service),
) -> OrderPlacedResponse:
    """
    Record the order, then forward it to the pizza factory.

    A factory rejection surfaces as 500 "Failed to fulfill order at
    factory"; the order row stays recorded.
    """
    order = await repo.add_diner_order(caller, body)

    result = await fulfillment.fulfill_order(caller_as_user(caller), order)
    if not result.success:
        logger.error(f"Order #{order.id} not fulfilled: {result.to_dict()}")
        raise FulfillmentError(report_url=result.report_url)

    return OrderPlacedResponse(
        order=order,
        follow_link_to_end_chaos=result.report_url,
        jwt=result.jwt,
    )


# =============================================================================
# FRANCHISE ENDPOINTS
# =============================================================================

@app.get(
    "/api/franchise",
    response_model=FranchiseListResponse,
    response_model_exclude_none=True,
    tags=["Franchises"],
)
async def list_franchises(
    page: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    name: str = Query("*"),
    caller: Optional[Caller] = Depends(get_caller),
    repo: PizzaRepository = Depends(get_repository),
) -> FranchiseListResponse:
    franchises, more = await repo.get_franchises(caller, page, limit, name)
    return FranchiseListResponse(franchises=franchises, more=more)


@app.get(
    "/api/franchise/{user_id}",
    response_model=list[FranchiseOut],
    response_model_exclude_none=True,
    tags=["Franchises"],
)
async def list_user_franchises(
    user_id: int,
    caller: Caller = Depends(require_caller),
    repo: PizzaRepository = Depends(get_repository),
) -> list[FranchiseOut]:
    if not is_authorized(caller, Requirement.SELF, user_id):
        return []
    return await repo.get_user_franchises(user_id)


@app.post("/api/franchise", response_model=FranchiseOut, tags=["Franchises"])
async def create_franchise(
    body: FranchiseCreate,
    caller: Caller = Depends(require_caller),
    repo: PizzaRepository = Depends(get_repository),
) -> FranchiseOut:
    require(caller, Requirement.ADMIN, message="unable to create a franchise")
    return await repo.create_franchise(body)


@app.delete("/api/franchise/{franchise_id}", response_model=MessageResponse, tags=["Franchises"])
async def delete_franchise(
    franchise_id: int,
    caller: Caller = Depends(require_caller),
    repo: PizzaRepository = Depends(get_repository),
) -> MessageResponse:
    require(caller, Requirement.ADMIN, message="unable to delete a franchise")

    await repo.delete_franchise(franchise_id)
    return MessageResponse(message="franchise deleted")


@app.post(
    "/api/franchise/{franchise_id}/store",
    response_model=StoreOut,
    response_model_exclude_none=True,
    tags=["Franchises"],
)
async def create_store(
    franchise_id: int,
    body: StoreCreate,
    caller: Caller = Depends(require_caller),
    repo: PizzaRepository = Depends(get_repository),
) -> StoreOut:
    """Admins and franchisees of this franchise may open stores."""
    admin_ids = await repo.get_franchise_admin_ids(franchise_id)
    if admin_ids is None or not administers(caller, admin_ids):
        raise ForbiddenError("unable to create a store")

    return await repo.create_store(franchise_id, body)


@app.delete(
    "/api/franchise/{franchise_id}/store/{store_id}",
    response_model=MessageResponse,
    tags=["Franchises"],
)
async def delete_store(
    franchise_id: int,
    store_id: int,
    caller: Caller = Depends(require_caller),
    repo: PizzaRepository = Depends(get_repository),
) -> MessageResponse:
    admin_ids = await repo.get_franchise_admin_ids(franchise_id)
    if admin_ids is None or not administers(caller, admin_ids):
        raise ForbiddenError("unable to delete a store")

    await repo.delete_store(franchise_id, store_id)
    return MessageResponse(message="store deleted")


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(PizzaServiceError)
async def service_error_handler(request: Request, exc: PizzaServiceError) -> JSONResponse:
    """Render domain errors as ``{"message": ...}`` with their status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details: list[dict[str, Any]] = [
        {"field": ".".join(str(p) for p in err["loc"][1:]), "error": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"message": "invalid request", "errors": details},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "message": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
