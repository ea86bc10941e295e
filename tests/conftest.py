from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import marketplace.models  # noqa: F401
from marketplace.database import Base, get_db
from marketplace.main import app
from marketplace.services import (
    matching_service,
    rfq_service,
    review_service,
    supplier_service,
    user_service,
)
from marketplace.services.auth_service import create_access_token
from marketplace.services.entity_store import UserStore

TEXTILES = "Textiles & Apparel"
SPICES = "Spices & Food Products"


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'marketplace_test.db'}",
        connect_args={"timeout": 30},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.pop(get_db, None)


def _bearer(user) -> dict:
    token = create_access_token(user_id=user.id, role=user.user_type, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return _bearer


def _id(entity_or_id) -> str:
    return entity_or_id if isinstance(entity_or_id, str) else entity_or_id.id


class Marketplace:
    """Builds users, suppliers, RFQs and quotations through the services."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._seq = 0
        self._admin_id = None

    async def fresh(self, store_cls, entity_id: str):
        """Re-read a row, overwriting whatever the identity map holds."""
        return await store_cls(self.session).get(entity_id, for_update=True)

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def user(self, user_type: str, **fields):
        n = self._next()
        result = await user_service.register_user(
            self.session,
            email=fields.pop("email", f"{user_type}{n}@example.com"),
            name=fields.pop("name", f"{user_type.title()} {n}"),
            user_type=user_type,
            company=fields.pop("company", f"Company {n}"),
            country=fields.pop("country", "India"),
            **fields,
        )
        user = result.unwrap()
        await self.session.commit()
        return user

    async def admin(self):
        if self._admin_id is None:
            admin = await self.user("admin")
            self._admin_id = admin.id
            return admin
        return await UserStore(self.session).get(self._admin_id)

    async def buyer(self):
        return await self.user("buyer")

    async def supplier(
        self,
        categories=(TEXTILES,),
        certifications=(),
        years_in_business: int = 5,
        verify: bool = True,
    ):
        user = await self.user("supplier")
        result = await supplier_service.create_profile(
            self.session,
            user.id,
            company_name=f"{user.name} Exports",
            product_categories=list(categories),
            certifications=list(certifications),
            years_in_business=years_in_business,
        )
        supplier = result.unwrap()
        await self.session.commit()
        if verify:
            admin = await self.admin()
            result = await supplier_service.review_supplier(
                self.session, supplier.id, "verify", admin.id
            )
            supplier = result.unwrap()
        return supplier

    async def rfq(
        self,
        buyer,
        category: str = TEXTILES,
        quantity: int = 5000,
        target_price: Decimal = Decimal("8.50"),
        through: str = "matched",
        **optional,
    ):
        """Create an RFQ and walk it to ``through`` (pending_approval, approved, matched)."""
        result = await rfq_service.create_rfq(
            self.session,
            _id(buyer),
            title=f"{quantity} units of {category}",
            category=category,
            quantity=quantity,
            unit="pieces",
            target_price=target_price,
            **optional,
        )
        rfq = result.unwrap()
        await self.session.commit()
        if through == "pending_approval":
            return rfq

        admin = await self.admin()
        rfq = (await rfq_service.review(self.session, rfq.id, "approve", admin.id)).unwrap()
        if through == "approved":
            return rfq
        return (
            await matching_service.confirm_matches(self.session, rfq.id, actor_id=admin.id)
        ).unwrap()

    async def quotation(
        self,
        supplier,
        rfq,
        quoted_price: Decimal = Decimal("8.00"),
        moq: int = 1000,
        validity_days: int = 30,
        send_to_buyer: bool = False,
        **terms,
    ):
        result = await review_service.submit(
            self.session,
            _id(supplier),
            _id(rfq),
            quoted_price=quoted_price,
            moq=moq,
            validity_days=validity_days,
            **terms,
        )
        quotation = result.unwrap()
        if send_to_buyer:
            admin = await self.admin()
            quotation = (
                await review_service.review(self.session, quotation.id, "approve", admin.id)
            ).unwrap()
        return quotation


@pytest.fixture
def market(db) -> Marketplace:
    return Marketplace(db)
