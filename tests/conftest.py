"""Test configuration."""
import os
import time
from collections.abc import AsyncIterator, Callable, Iterator
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import uuid4

from alembic import command
from alembic.config import Config
import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# --- Default env for the test run
os.environ.setdefault("DATABASE_URL", "sqlite:///./woorkpay_test.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("MERCADOPAGO_ACCESS_TOKEN", "TEST-access-token")
os.environ.setdefault("MERCADOPAGO_WEBHOOK_SECRET", "test-webhook-secret")

from woorkpay.main import app  # noqa: E402
from woorkpay.db import enable_sqlite_savepoints, get_db  # noqa: E402
from woorkpay.models import PaymentGatewayConfig, Profile, Proposal  # noqa: E402
from woorkpay.schemas.processor import ProcessorPayment  # noqa: E402
from woorkpay.services.psp_mercadopago import get_processor  # noqa: E402

DB_PATH = Path("./woorkpay_test.db")


def _run_migrations() -> None:
    cfg = Config(str(Path(__file__).resolve().parents[1] / "alembic.ini"))
    cfg.set_main_option("script_location", str(Path(__file__).resolve().parents[1] / "alembic"))
    cfg.set_main_option("sqlalchemy.url", os.environ["DATABASE_URL"])
    command.upgrade(cfg, "head")


# --- (1) Fresh database file for the session
if DB_PATH.exists():
    DB_PATH.unlink()

engine = create_engine(
    os.environ["DATABASE_URL"],
    connect_args={"check_same_thread": False},
    future=True,
)
enable_sqlite_savepoints(engine)
TestingSessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False,
    join_transaction_mode="create_savepoint",
)

# --- (2) Schema comes from Alembic only
_run_migrations()


@pytest.fixture
def db_session() -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


class FakeProcessor:
    """In-memory stand-in for the Mercado Pago client."""

    def __init__(self) -> None:
        self.created: list[tuple[dict[str, Any], str]] = []
        self.fetched: list[str] = []
        self.create_response: dict[str, Any] | None = None
        self.create_error: Exception | None = None
        self.payments: dict[str, dict[str, Any]] = {}
        self.get_error: Exception | None = None

    def create_payment(self, payload: dict[str, Any], *, idempotency_key: str) -> ProcessorPayment:
        self.created.append((payload, idempotency_key))
        if self.create_error is not None:
            raise self.create_error
        assert self.create_response is not None, "configure create_response first"
        self.payments[str(self.create_response["id"])] = self.create_response
        return ProcessorPayment.from_response(self.create_response)

    def get_payment(self, payment_id: str) -> ProcessorPayment:
        self.fetched.append(payment_id)
        if self.get_error is not None:
            raise self.get_error
        return ProcessorPayment.from_response(self.payments[payment_id])


@pytest.fixture
def fake_processor() -> FakeProcessor:
    return FakeProcessor()


@pytest.fixture(autouse=True)
def override_dependencies(db_session: Session, fake_processor: FakeProcessor) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_processor] = lambda: fake_processor
    yield
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_processor, None)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _make_token(user_id: str, *, expires_in: int = 3600, secret: str | None = None, audience: str = "authenticated") -> str:
    claims = {"sub": user_id, "aud": audience, "exp": int(time.time()) + expires_in}
    return jwt.encode(claims, secret or os.environ["AUTH_JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def make_profile(db_session: Session) -> Callable[..., Profile]:
    def _factory(name: str = "profile") -> Profile:
        profile = Profile(
            user_id=f"user-{uuid4().hex}",
            display_name=name,
            email=f"{name}-{uuid4().hex[:8]}@example.com",
        )
        db_session.add(profile)
        db_session.commit()
        db_session.refresh(profile)
        return profile

    return _factory


@pytest.fixture
def payer(make_profile: Callable[..., Profile]) -> Profile:
    return make_profile("payer")


@pytest.fixture
def payer_headers(payer: Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {_make_token(payer.user_id)}"}


@pytest.fixture
def gateway(db_session: Session) -> PaymentGatewayConfig:
    config = PaymentGatewayConfig(
        mercadopago_enabled=True,
        mercadopago_pix_discount_percent=Decimal("3.00"),
        mercadopago_card_discount_percent=None,
    )
    db_session.add(config)
    db_session.commit()
    db_session.refresh(config)
    return config


@pytest.fixture
def make_proposal(db_session: Session, make_profile: Callable[..., Profile]) -> Callable[..., Proposal]:
    def _factory(*, freelancer: Profile | None = None, client: Profile | None = None) -> Proposal:
        proposal = Proposal(
            freelancer_id=(freelancer or make_profile("freelancer")).id,
            client_id=client.id if client else None,
            title="Landing page redesign",
        )
        db_session.add(proposal)
        db_session.commit()
        db_session.refresh(proposal)
        return proposal

    return _factory


def _processor_response(
    payment_id: str | int,
    status: str,
    *,
    amount: str = "194.00",
    pix: bool = True,
    status_detail: str | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "id": int(payment_id) if str(payment_id).isdigit() else payment_id,
        "status": status,
        "status_detail": status_detail or ("pending_waiting_transfer" if status == "pending" else "accredited"),
        "transaction_amount": float(amount),
        "date_of_expiration": "2026-10-20T12:00:00.000-03:00",
    }
    if pix:
        body["point_of_interaction"] = {
            "transaction_data": {
                "qr_code": "00020126580014br.gov.bcb.pix0136test",
                "qr_code_base64": "iVBORw0KGgoAAAANSUhEUgAAAAE=",
            }
        }
    return body


@pytest.fixture
def make_token() -> Callable[..., str]:
    return _make_token


@pytest.fixture
def mp_response() -> Callable[..., dict[str, Any]]:
    """Factory for Mercado Pago ``/v1/payments`` response bodies."""

    return _processor_response
