"""
Data Access Layer

``PizzaRepository`` wraps the single session acquired for a request and
exposes every persistence operation the route layer needs:

    Credential Store   - add_user, get_user, get_user_by_id, update_user, list_users
    Token Registry     - issue_token, login_user, is_logged_in, logout_user
    Menu Store         - get_menu, add_menu_item
    Franchise Registry - create_franchise, delete_franchise, get_franchises,
                         get_user_franchises, get_franchise, create_store, delete_store
    Order Ledger       - get_orders, add_diner_order

Authorization is NOT enforced here; callers check the policy first.

Writes are committed statement by statement. Only ``delete_franchise``
groups several statements into one transaction; order and franchise
creation can leave partial rows behind if a later step fails.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pizza_service.core.config import get_settings
from pizza_service.core.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthenticatedError,
)
from pizza_service.core.policy import Caller, Role
from pizza_service.core.security import (
    hash_password,
    issue_token as sign_token,
    token_signature,
    verify_password,
)
from pizza_service.models import (
    AuthToken,
    DinerOrder,
    Franchise,
    MenuItem,
    OrderItem,
    Store,
    User,
    UserRole,
)
from pizza_service.schemas import (
    FranchiseAdminOut,
    FranchiseCreate,
    FranchiseOut,
    MenuItemCreate,
    MenuItemOut,
    OrderCreate,
    OrderHistory,
    OrderItemOut,
    OrderOut,
    RoleAssignment,
    RoleOut,
    StoreCreate,
    StoreOut,
    UserOut,
)

logger = logging.getLogger(__name__)


def like_pattern(name_filter: Optional[str]) -> str:
    """Translate a ``*`` wildcard filter into a SQL LIKE pattern."""
    return (name_filter or "*").replace("*", "%")


class PizzaRepository:
    """Persistence operations bound to one request-scoped session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()

    async def _add(self, row):
        """Insert a single row and commit it immediately."""
        self.session.add(row)
        await self.session.commit()
        return row

    async def _get_id(self, column, value, label: str) -> int:
        """Resolve ``value`` in ``column`` to the owning row's id."""
        model = column.class_
        result = await self.session.execute(select(model.id).where(column == value))
        found = result.scalar_one_or_none()
        if found is None:
            raise NotFoundError(f"No {label} found for {value}")
        return found

    # =========================================================================
    # CREDENTIAL STORE
    # =========================================================================

    async def _get_roles(self, user_id: int) -> list[RoleOut]:
        result = await self.session.execute(
            select(UserRole).where(UserRole.user_id == user_id).order_by(UserRole.id)
        )
        return [
            RoleOut(role=r.role, object_id=r.object_id)
            for r in result.scalars().all()
        ]

    async def _to_user_out(self, user: User) -> UserOut:
        roles = await self._get_roles(user.id)
        return UserOut(id=user.id, name=user.name, email=user.email, roles=roles)

    async def add_user(
        self,
        name: str,
        email: str,
        password: str,
        roles: list[RoleAssignment],
    ) -> UserOut:
        """
        Create a user and one role-binding row per role.
        
        Franchisee roles name their franchise; an unknown franchise name
        raises NotFoundError after the user row has been written.

        Raises:
            ConflictError: Email already registered
        """
        try:
            user = await self._add(User(name=name, email=email, password=hash_password(password)))
        except IntegrityError:
            await self.session.rollback()
            logger.warning(f"Registration rejected, email {email} already in use")
            raise ConflictError("email already registered")

        bound = []
        for assignment in roles:
            object_id = None
            if assignment.role is Role.FRANCHISEE:
                object_id = await self._get_id(Franchise.name, assignment.object, "franchise")
            await self._add(UserRole(user_id=user.id, role=assignment.role, object_id=object_id))
            bound.append(RoleOut(role=assignment.role, object_id=object_id))

        logger.info(f"User #{user.id} created with roles {[r.role.value for r in bound]}")
        return UserOut(id=user.id, name=user.name, email=user.email, roles=bound)

    async def get_user(self, email: str, password: Optional[str] = None) -> UserOut:
        """
        Fetch a user by email, verifying ``password`` when one is given.
        
        Raises:
            UnauthenticatedError: Unknown email or password mismatch
        """
        result = await self.session.execute(
            select(User)
            .where(User.email == email)
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()

        if user is None or (password is not None and not verify_password(password, user.password)):
            raise UnauthenticatedError("unknown user")

        return await self._to_user_out(user)

    async def get_user_by_id(self, user_id: int) -> UserOut:
        result = await self.session.execute(
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("unknown user")
        return await self._to_user_out(user)

    async def update_user(
        self,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> UserOut:
        """
        Apply profile changes in one UPDATE and return the refreshed user.
        
        The UPDATE is issued even when no field changed.

        Raises:
            ConflictError: ``email`` belongs to another user
        """
        changes = {}
        if password:
            changes["password"] = hash_password(password)
        if email:
            changes["email"] = email
        if name:
            changes["name"] = name

        try:
            await self.session.execute(
                update(User)
                .where(User.id == user_id)
                .values(**(changes or {"name": User.name}))
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.warning(f"Update of user #{user_id} rejected, email {email} already in use")
            raise ConflictError("email already registered")
        logger.info(f"User #{user_id} updated ({', '.join(changes) or 'no changes'})")

        return await self.get_user_by_id(user_id)

    async def list_users(
        self,
        page: int = 0,
        limit: int = 10,
        name_filter: str = "*",
    ) -> tuple[list[UserOut], bool]:
        """Page through users by name; returns ``(users, more)``."""
        result = await self.session.execute(
            select(User)
            .where(User.name.like(like_pattern(name_filter)))
            .order_by(User.id)
            .offset(page * limit)
            .limit(limit + 1)
        )
        users = list(result.scalars().all())
        more = len(users) > limit
        return [await self._to_user_out(u) for u in users[:limit]], more

    async def ensure_default_admin(self, name: str, email: str, password: str) -> Optional[UserOut]:
        """Seed an Admin user when the user table is empty."""
        count = (await self.session.execute(select(func.count(User.id)))).scalar() or 0
        if count:
            return None
        logger.info(f"Seeding default admin {email}")
        return await self.add_user(name, email, password, [RoleAssignment(role=Role.ADMIN)])

    # =========================================================================
    # TOKEN REGISTRY
    # =========================================================================

    async def login_user(self, user_id: int, token: str) -> None:
        """Record the token's signature; re-recording the same token is a no-op."""
        await self.session.merge(AuthToken(token=token_signature(token), user_id=user_id))
        await self.session.commit()

    async def issue_token(self, user: UserOut) -> str:
        """Mint a session token for ``user`` and register its signature."""
        claims = user.model_dump(by_alias=True, mode="json")
        claims["iat"] = int(time.time())
        claims["jti"] = uuid.uuid4().hex
        token = sign_token(claims)
        await self.login_user(user.id, token)
        return token

    async def is_logged_in(self, token: str) -> bool:
        result = await self.session.execute(
            select(AuthToken.user_id).where(AuthToken.token == token_signature(token))
        )
        return result.first() is not None

    async def logout_user(self, token: str) -> None:
        """Revoke a token. Unknown tokens are ignored."""
        await self.session.execute(
            delete(AuthToken).where(AuthToken.token == token_signature(token))
        )
        await self.session.commit()

    # =========================================================================
    # MENU STORE
    # =========================================================================

    async def get_menu(self) -> list[MenuItemOut]:
        result = await self.session.execute(select(MenuItem).order_by(MenuItem.id))
        return [MenuItemOut.model_validate(m) for m in result.scalars().all()]

    async def add_menu_item(self, item: MenuItemCreate) -> MenuItemOut:
        row = await self._add(
            MenuItem(
                title=item.title,
                description=item.description,
                image=item.image,
                price=item.price,
            )
        )
        logger.info(f"Menu item #{row.id} added: {row.title}")
        return MenuItemOut.model_validate(row)

    # =========================================================================
    # FRANCHISE / STORE REGISTRY
    # =========================================================================

    async def create_franchise(self, franchise: FranchiseCreate) -> FranchiseOut:
        """
        Create a franchise and make each listed admin a franchisee of it.
        
        Every admin email is resolved before anything is written; the first
        unknown email aborts with NotFoundError and no rows are inserted.
        """
        admins = []
        for admin in franchise.admins:
            result = await self.session.execute(
                select(User.id, User.name).where(User.email == admin.email)
            )
            row = result.first()
            if row is None:
                raise NotFoundError(f"unknown user for franchise admin {admin.email} provided")
            admins.append(FranchiseAdminOut(id=row.id, name=row.name, email=admin.email))

        created = await self._add(Franchise(name=franchise.name))

        for admin in admins:
            await self._add(UserRole(user_id=admin.id, role=Role.FRANCHISEE, object_id=created.id))

        logger.info(f"Franchise #{created.id} '{created.name}' created with {len(admins)} admin(s)")
        return FranchiseOut(id=created.id, name=created.name, admins=admins, stores=[])

    async def delete_franchise(self, franchise_id: int) -> None:
        """
        Delete a franchise, its stores and its franchisee bindings atomically.
        
        Raises:
            InternalError: If any step fails; the transaction is rolled back
        """
        try:
            await self.session.execute(delete(Store).where(Store.franchise_id == franchise_id))
            await self.session.execute(
                delete(UserRole).where(
                    UserRole.object_id == franchise_id,
                    UserRole.role == Role.FRANCHISEE,
                )
            )
            await self.session.execute(delete(Franchise).where(Franchise.id == franchise_id))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Rolled back deletion of franchise #{franchise_id}: {e}")
            raise InternalError("unable to delete franchise")

        logger.info(f"Franchise #{franchise_id} deleted")

    async def _franchise_admins(self, franchise_id: int) -> list[FranchiseAdminOut]:
        result = await self.session.execute(
            select(User.id, User.name, User.email)
            .join(UserRole, UserRole.user_id == User.id)
            .where(UserRole.object_id == franchise_id, UserRole.role == Role.FRANCHISEE)
            .order_by(UserRole.id)
        )
        return [FranchiseAdminOut(id=r.id, name=r.name, email=r.email) for r in result.all()]

    async def _store_revenue(self, franchise_id: int) -> list[StoreOut]:
        result = await self.session.execute(
            select(
                Store.id,
                Store.name,
                func.coalesce(func.sum(OrderItem.price), 0).label("total_revenue"),
            )
            .select_from(Store)
            .outerjoin(DinerOrder, DinerOrder.store_id == Store.id)
            .outerjoin(OrderItem, OrderItem.order_id == DinerOrder.id)
            .where(Store.franchise_id == franchise_id)
            .group_by(Store.id, Store.name)
            .order_by(Store.id)
        )
        return [
            StoreOut(id=r.id, name=r.name, total_revenue=float(r.total_revenue))
            for r in result.all()
        ]

    async def _stores(self, franchise_id: int) -> list[StoreOut]:
        result = await self.session.execute(
            select(Store.id, Store.name)
            .where(Store.franchise_id == franchise_id)
            .order_by(Store.id)
        )
        return [StoreOut(id=r.id, name=r.name) for r in result.all()]

    async def franchise_details(self, franchise: Franchise) -> FranchiseOut:
        """Resolve a franchise's admins and stores (with revenue)."""
        return FranchiseOut(
            id=franchise.id,
            name=franchise.name,
            admins=await self._franchise_admins(franchise.id),
            stores=await self._store_revenue(franchise.id),
        )

    async def get_franchise(self, franchise_id: int) -> Optional[FranchiseOut]:
        franchise = await self.session.get(Franchise, franchise_id)
        if franchise is None:
            return None
        return await self.franchise_details(franchise)

    async def get_franchise_admin_ids(self, franchise_id: int) -> Optional[set[int]]:
        """Ids of the users bound as the franchise's admins, or None if it does not exist."""
        if await self.session.get(Franchise, franchise_id) is None:
            return None
        result = await self.session.execute(
            select(UserRole.user_id).where(
                UserRole.object_id == franchise_id,
                UserRole.role == Role.FRANCHISEE,
            )
        )
        return set(result.scalars().all())

    async def get_franchises(
        self,
        caller: Optional[Caller] = None,
        page: int = 0,
        limit: int = 10,
        name_filter: str = "*",
    ) -> tuple[list[FranchiseOut], bool]:
        """
        Page through franchises by name; returns ``(franchises, more)``.
        
        Admins receive admins and per-store revenue; everyone else only
        the store ids and names.
        """
        result = await self.session.execute(
            select(Franchise)
            .where(Franchise.name.like(like_pattern(name_filter)))
            .order_by(Franchise.id)
            .offset(page * limit)
            .limit(limit + 1)
        )
        rows = list(result.scalars().all())
        more = len(rows) > limit

        franchises = []
        for franchise in rows[:limit]:
            if caller is not None and caller.is_admin:
                franchises.append(await self.franchise_details(franchise))
            else:
                franchises.append(
                    FranchiseOut(
                        id=franchise.id,
                        name=franchise.name,
                        stores=await self._stores(franchise.id),
                    )
                )
        return franchises, more

    async def get_user_franchises(self, user_id: int) -> list[FranchiseOut]:
        result = await self.session.execute(
            select(UserRole.object_id).where(
                UserRole.user_id == user_id,
                UserRole.role == Role.FRANCHISEE,
            )
        )
        franchise_ids = [r for r in result.scalars().all() if r is not None]
        if not franchise_ids:
            return []

        result = await self.session.execute(
            select(Franchise).where(Franchise.id.in_(franchise_ids)).order_by(Franchise.id)
        )
        return [await self.franchise_details(f) for f in result.scalars().all()]

    async def create_store(self, franchise_id: int, store: StoreCreate) -> StoreOut:
        row = await self._add(Store(franchise_id=franchise_id, name=store.name))
        logger.info(f"Store #{row.id} created for franchise #{franchise_id}")
        return StoreOut(id=row.id, name=row.name, franchise_id=franchise_id)

    async def delete_store(self, franchise_id: int, store_id: int) -> None:
        """Delete a store only if it belongs to ``franchise_id``."""
        await self.session.execute(
            delete(Store).where(Store.franchise_id == franchise_id, Store.id == store_id)
        )
        await self.session.commit()

    # =========================================================================
    # ORDER LEDGER
    # =========================================================================

    async def get_orders(self, user: Caller, page: int = 1) -> OrderHistory:
        per_page = self.settings.list_per_page
        offset = max(page - 1, 0) * per_page

        result = await self.session.execute(
            select(DinerOrder)
            .where(DinerOrder.diner_id == user.id)
            .order_by(DinerOrder.id)
            .offset(offset)
            .limit(per_page)
        )

        orders = []
        for order in result.scalars().all():
            items = await self.session.execute(
                select(OrderItem).where(OrderItem.order_id == order.id).order_by(OrderItem.id)
            )
            orders.append(
                OrderOut(
                    id=order.id,
                    franchise_id=order.franchise_id,
                    store_id=order.store_id,
                    date=order.date,
                    items=[OrderItemOut.model_validate(i) for i in items.scalars().all()],
                )
            )

        return OrderHistory(diner_id=user.id, orders=orders, page=page)

    async def add_diner_order(self, user: Caller, order: OrderCreate) -> OrderOut:
        """
        Record an order and its items, in input order.
        
        Each item's menu id is resolved against the menu first; a missing
        menu item raises NotFoundError, leaving earlier rows in place.
        """
        header = await self._add(
            DinerOrder(
                diner_id=user.id,
                franchise_id=order.franchise_id,
                store_id=order.store_id,
                date=datetime.now(timezone.utc),
            )
        )

        items = []
        for item in order.items:
            menu_id = await self._get_id(MenuItem.id, item.menu_id, "menu item")
            row = await self._add(
                OrderItem(
                    order_id=header.id,
                    menu_id=menu_id,
                    description=item.description,
                    price=item.price,
                )
            )
            items.append(OrderItemOut.model_validate(row))

        logger.info(f"Order #{header.id} recorded for diner #{user.id} ({len(items)} item(s))")
        return OrderOut(
            id=header.id,
            franchise_id=header.franchise_id,
            store_id=header.store_id,
            date=header.date,
            items=items,
        )
