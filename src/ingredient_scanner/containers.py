"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from ingredient_scanner.adapters.openai_inference_client import OpenAIInferenceClient
from ingredient_scanner.adapters.supabase_product_repository import (
    SupabaseProductRepository,
)
from ingredient_scanner.adapters.supabase_scan_repository import SupabaseScanRepository
from ingredient_scanner.adapters.supabase_user_repository import SupabaseUserRepository
from ingredient_scanner.adapters.telegram_client import (
    HttpxTelegramClient,
    TelegramClient,
)
from ingredient_scanner.adapters.telegram_file_client import (
    HttpxTelegramFileClient,
    TelegramFileClient,
)
from ingredient_scanner.config import PipelineConfig, Settings
from ingredient_scanner.domain.usage import CallKind
from ingredient_scanner.services.admin import AdminService
from ingredient_scanner.services.analysis import AnalysisPipeline
from ingredient_scanner.services.inference import InferenceGateway
from ingredient_scanner.services.products import ProductStore
from ingredient_scanner.services.scans import ScanLedger
from ingredient_scanner.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    telegram_client: TelegramClient
    telegram_file_client: TelegramFileClient
    user_service: UserService
    product_store: ProductStore
    scan_ledger: ScanLedger
    pipeline: AnalysisPipeline
    admin_service: AdminService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    config = PipelineConfig.from_settings(resolved_settings)
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    telegram_client = HttpxTelegramClient.create(resolved_settings.telegram_bot_token)
    telegram_file_client = HttpxTelegramFileClient.create(
        resolved_settings.telegram_bot_token
    )
    gateway = InferenceGateway(
        client=OpenAIInferenceClient.create(resolved_settings.openai_api_key),
        pricing=config.pricing,
        retry_count=config.retry_count,
    )
    product_store = ProductStore(
        repository=SupabaseProductRepository(supabase_client),
        fuzzy_accept_threshold=config.fuzzy_accept_threshold,
    )
    scan_ledger = ScanLedger(SupabaseScanRepository(supabase_client))
    user_service = UserService(
        repository=SupabaseUserRepository(supabase_client),
        gateway=gateway,
        model=resolved_settings.openai_fast_model,
        max_output_tokens=config.max_output_tokens[CallKind.PROFILE],
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    pipeline = AnalysisPipeline(
        gateway=gateway,
        product_store=product_store,
        ledger=scan_ledger,
        config=config,
        fast_model=resolved_settings.openai_fast_model,
        deep_model=resolved_settings.openai_deep_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    admin_service = AdminService(
        user_service=user_service,
        product_store=product_store,
        ledger=scan_ledger,
    )

    async def close_resources() -> None:
        await telegram_client.close()
        await telegram_file_client.close()

    return AppContainer(
        settings=resolved_settings,
        telegram_client=telegram_client,
        telegram_file_client=telegram_file_client,
        user_service=user_service,
        product_store=product_store,
        scan_ledger=scan_ledger,
        pipeline=pipeline,
        admin_service=admin_service,
        close_resources=close_resources,
    )
