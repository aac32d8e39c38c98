"""Shared test fixtures."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from ingredient_scanner.adapters.telegram_client import TelegramClient
from ingredient_scanner.config import CallPricing, PipelineConfig, Settings
from ingredient_scanner.containers import AppContainer
from ingredient_scanner.domain.models import UserRecord
from ingredient_scanner.domain.products import HealthProfile, Product
from ingredient_scanner.domain.scans import ScanRecord, UserTotals
from ingredient_scanner.domain.usage import CallKind, TokenCounts
from ingredient_scanner.errors import ImageFetchError, PersistenceError
from ingredient_scanner.services.admin import AdminService
from ingredient_scanner.services.analysis import AnalysisPipeline
from ingredient_scanner.services.inference import (
    InferenceClient,
    InferenceGateway,
    InferenceReply,
    InferenceRequest,
    ReplySegment,
)
from ingredient_scanner.services.products import (
    ProductIdentity,
    ProductRepository,
    ProductStore,
)
from ingredient_scanner.services.scans import ScanLedger, ScanRepository
from ingredient_scanner.services.users import UserRepository, UserService

FAST = CallPricing(input_rate=Decimal("1"), output_rate=Decimal("2"))
DEEP = CallPricing(
    input_rate=Decimal("10"), output_rate=Decimal("20"), search_rate=Decimal("0.01")
)
TEST_PRICING = {
    CallKind.EXTRACTION: FAST,
    CallKind.DEEP_ANALYSIS: DEEP,
    CallKind.COMPATIBILITY: FAST,
    CallKind.PROFILE: FAST,
}


def json_reply(  # noqa: PLR0913
    payload: object,
    *,
    prompt_tokens: int = 100,
    output_tokens: int = 50,
    thought_tokens: int = 0,
    search_requests: int = 0,
    reasoning: str | None = None,
) -> InferenceReply:
    """Build a reply whose answer text is the JSON encoding of payload."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    segments = [ReplySegment(text=text)]
    if reasoning is not None:
        segments.insert(0, ReplySegment(text=reasoning, reasoning=True))
    return InferenceReply(
        segments=segments,
        counters=TokenCounts(
            prompt_tokens=prompt_tokens,
            output_tokens=output_tokens,
            thought_tokens=thought_tokens,
            search_requests=search_requests,
        ),
    )


def extraction_payload(
    name: str | None = "Diet Cola", brand: str | None = "Acme"
) -> dict[str, object]:
    return {
        "is_product": True,
        "rejection_reason": None,
        "product_name": name,
        "brand": brand,
    }


def analysis_payload(
    name: str | None = "Diet Cola", brand: str | None = "Acme"
) -> dict[str, object]:
    return {
        "is_product": True,
        "rejection_reason": None,
        "product_name": name,
        "brand": brand,
        "health_score": 35,
        "ingredients": {
            "good": [{"name": "water", "reason": "Hydrating base."}],
            "okay": [{"name": "citric acid", "reason": "Common acidity regulator."}],
            "bad": [{"name": "aspartame", "reason": "Artificial sweetener."}],
        },
    }


def compatibility_payload(level: str = "LOW") -> dict[str, object]:
    return {"compatibility_level": level, "reason": "Contains aspartame."}


@dataclass
class ScriptedInferenceClient(InferenceClient):
    """Inference client that replays queued replies per call kind."""

    replies: dict[CallKind, list[InferenceReply | Exception]] = field(
        default_factory=dict
    )
    requests: list[InferenceRequest] = field(default_factory=list)

    def queue(self, kind: CallKind, *replies: InferenceReply | Exception) -> None:
        self.replies.setdefault(kind, []).extend(replies)

    def calls(self, kind: CallKind) -> list[InferenceRequest]:
        return [request for request in self.requests if request.kind == kind]

    async def complete(self, request: InferenceRequest) -> InferenceReply:
        self.requests.append(request)
        # Yield so concurrent scans interleave at every call.
        await asyncio.sleep(0)
        queue = self.replies.get(request.kind) or []
        if not queue:
            raise AssertionError(f"No scripted reply for {request.kind}")
        reply = queue.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@dataclass
class InMemoryProductRepository(ProductRepository):
    """In-memory product repository for tests."""

    products: dict[UUID, Product] = field(default_factory=dict)
    keys: dict[str, UUID] = field(default_factory=dict)
    fail_inserts: bool = False

    def get_product(self, product_id: UUID) -> Product | None:
        return self.products.get(product_id)

    def find_by_exact_key(self, key: str) -> Product | None:
        product_id = self.keys.get(key)
        return self.products.get(product_id) if product_id else None

    def list_identities(self) -> list[ProductIdentity]:
        return [
            ProductIdentity(
                id=product.id, product_name=product.product_name, brand=product.brand
            )
            for product in self.products.values()
        ]

    def insert_product(self, product: Product, key: str) -> Product:
        if self.fail_inserts:
            raise PersistenceError("insert failed")
        if product.id in self.products:
            raise AssertionError(f"Duplicate product id {product.id}")
        self.products[product.id] = product
        self.keys.setdefault(key, product.id)
        return product

    def list_recent_products(self, limit: int) -> list[Product]:
        ordered = sorted(
            self.products.values(), key=lambda product: product.created_at, reverse=True
        )
        return ordered[:limit]


@dataclass
class InMemoryScanRepository(ScanRepository):
    """In-memory scan repository for tests."""

    scans: dict[UUID, list[ScanRecord]] = field(default_factory=dict)
    totals: dict[UUID, UserTotals] = field(default_factory=dict)
    fail_appends: bool = False

    def append_scan(self, user_id: UUID, record: ScanRecord) -> None:
        if self.fail_appends:
            raise RuntimeError("ledger unavailable")
        self.scans.setdefault(user_id, []).append(record)

    def list_recent_scans(self, user_id: UUID, limit: int) -> list[ScanRecord]:
        return list(reversed(self.scans.get(user_id, [])))[:limit]

    def get_totals(self, user_id: UUID) -> UserTotals | None:
        return self.totals.get(user_id)

    def save_totals(self, user_id: UUID, totals: UserTotals) -> None:
        self.totals[user_id] = totals


@dataclass
class InMemoryUserRepository(UserRepository):
    """In-memory user repository for tests."""

    users: dict[int, UserRecord] = field(default_factory=dict)
    touched: list[UUID] = field(default_factory=list)

    def get_by_telegram_id(self, telegram_user_id: int) -> UserRecord | None:
        return self.users.get(telegram_user_id)

    def create_user(self, telegram_user_id: int) -> UserRecord:
        user = UserRecord(id=uuid4(), telegram_user_id=telegram_user_id)
        self.users[telegram_user_id] = user
        return user

    def touch_last_active(self, user_id: UUID) -> None:
        self.touched.append(user_id)
        for telegram_user_id, user in self.users.items():
            if user.id == user_id:
                self.users[telegram_user_id] = UserRecord(
                    id=user.id,
                    telegram_user_id=user.telegram_user_id,
                    profile=user.profile,
                    last_active_at=datetime.now(tz=UTC),
                )

    def update_profile(self, user_id: UUID, profile: HealthProfile) -> None:
        for telegram_user_id, user in self.users.items():
            if user.id == user_id:
                self.users[telegram_user_id] = UserRecord(
                    id=user.id,
                    telegram_user_id=user.telegram_user_id,
                    profile=profile,
                    last_active_at=user.last_active_at,
                )

    def list_users(self) -> list[UserRecord]:
        return list(self.users.values())


@dataclass
class FakeTelegramClient(TelegramClient):
    """Fake Telegram client that records messages."""

    messages: list[tuple[int, str]] = field(default_factory=list)
    replies_to: list[int | None] = field(default_factory=list)
    chat_actions: list[tuple[int, str]] = field(default_factory=list)
    commands: list[dict[str, str]] | None = None

    async def send_message(
        self, chat_id: int, text: str, reply_to_message_id: int | None = None
    ) -> None:
        self.messages.append((chat_id, text))
        self.replies_to.append(reply_to_message_id)

    async def send_chat_action(self, chat_id: int, action: str = "typing") -> None:
        self.chat_actions.append((chat_id, action))

    async def set_my_commands(self, commands: list[dict[str, str]]) -> None:
        self.commands = commands


@dataclass
class FakeTelegramFileClient:
    """Fake Telegram file client that returns static bytes."""

    content: bytes = b"\xff\xd8\xfffake-jpeg"
    requested: list[str] = field(default_factory=list)
    fail: bool = False

    async def download_file_bytes(self, file_id: str) -> bytes:
        self.requested.append(file_id)
        if self.fail:
            raise ImageFetchError(f"cannot download {file_id}")
        return self.content


async def load_fake_image() -> bytes:
    return b"\x89PNG\r\n\x1a\nfake-png"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        telegram_bot_token="test-token",
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        openai_api_key="openai-key",
    )


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig(pricing=TEST_PRICING)


@pytest.fixture
def inference_client() -> ScriptedInferenceClient:
    return ScriptedInferenceClient()


@pytest.fixture
def gateway(inference_client: ScriptedInferenceClient) -> InferenceGateway:
    return InferenceGateway(client=inference_client, pricing=TEST_PRICING)


@pytest.fixture
def product_repository() -> InMemoryProductRepository:
    return InMemoryProductRepository()


@pytest.fixture
def product_store(product_repository: InMemoryProductRepository) -> ProductStore:
    return ProductStore(product_repository)


@pytest.fixture
def scan_repository() -> InMemoryScanRepository:
    return InMemoryScanRepository()


@pytest.fixture
def scan_ledger(scan_repository: InMemoryScanRepository) -> ScanLedger:
    return ScanLedger(scan_repository)


@pytest.fixture
def pipeline(
    gateway: InferenceGateway,
    product_store: ProductStore,
    scan_ledger: ScanLedger,
    pipeline_config: PipelineConfig,
) -> AnalysisPipeline:
    return AnalysisPipeline(
        gateway=gateway,
        product_store=product_store,
        ledger=scan_ledger,
        config=pipeline_config,
        fast_model="fast-model",
        deep_model="deep-model",
    )


@pytest.fixture
def user_repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def user_service(
    user_repository: InMemoryUserRepository, gateway: InferenceGateway
) -> UserService:
    return UserService(repository=user_repository, gateway=gateway, model="fast-model")


@pytest.fixture
def telegram_client() -> FakeTelegramClient:
    return FakeTelegramClient()


@pytest.fixture
def telegram_file_client() -> FakeTelegramFileClient:
    return FakeTelegramFileClient()


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    telegram_client: FakeTelegramClient,
    telegram_file_client: FakeTelegramFileClient,
    user_service: UserService,
    product_store: ProductStore,
    scan_ledger: ScanLedger,
    pipeline: AnalysisPipeline,
) -> AppContainer:
    admin_service = AdminService(
        user_service=user_service,
        product_store=product_store,
        ledger=scan_ledger,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        telegram_client=telegram_client,
        telegram_file_client=telegram_file_client,
        user_service=user_service,
        product_store=product_store,
        scan_ledger=scan_ledger,
        pipeline=pipeline,
        admin_service=admin_service,
        close_resources=close_resources,
    )
