"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from ingredient_scanner.api.admin import router as admin_router
from ingredient_scanner.api.telegram_models import (
    TelegramMessage,
    TelegramPhotoSize,
    TelegramUpdate,
)
from ingredient_scanner.app_logging import configure_logging
from ingredient_scanner.config import parse_allowed_user_ids
from ingredient_scanner.containers import AppContainer
from ingredient_scanner.domain.models import UserRecord
from ingredient_scanner.domain.products import (
    CompatibilityLevel,
    CompatibilityResult,
    HealthProfile,
    Ingredient,
    Product,
)
from ingredient_scanner.domain.scans import ScanRecord, UserTotals
from ingredient_scanner.domain.usage import UsageRecord
from ingredient_scanner.errors import InferenceError, PersistenceError
from ingredient_scanner.services.analysis import ScanOutcome, ScanRequest, ScanResult
from ingredient_scanner.telegram_commands import BotCommand, match_command, telegram_commands

HISTORY_LIMIT = 5

_PROFILE_LABELS = {
    "diet": "Diet",
    "food_allergies": "Food allergies",
    "ingredient_sensitivities": "Ingredient sensitivities",
    "skin_sensitivities": "Skin sensitivities",
    "health_conditions": "Health conditions",
}

_LEVEL_LABELS = {
    CompatibilityLevel.VERY_HIGH: "Very high",
    CompatibilityLevel.HIGH: "High",
    CompatibilityLevel.MEDIUM: "Medium",
    CompatibilityLevel.LOW: "Low",
    CompatibilityLevel.NONE: "Not compatible",
}

WELCOME_TEXT = (
    "Welcome to Ingredient Scanner! Send me a photo of a packaged product "
    "and I'll break down its ingredients.\n"
    "Tell me about your diet, allergies and health conditions with "
    "/profile to get a personal compatibility verdict."
)

HELP_TEXT = (
    "How to use:\n"
    "- Send a clear photo of the product label or package.\n"
    "- /profile <description> sets your health profile, e.g. "
    "/profile vegetarian, allergic to peanuts, sensitive to caffeine.\n"
    "- /history shows your last scans.\n"
    "- /usage shows how many scans you've made."
)


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)
    allowed_user_ids = parse_allowed_user_ids(
        container.settings.telegram_allowed_user_ids
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await app.state.container.telegram_client.set_my_commands(
                telegram_commands()
            )
        except Exception:
            logger.exception("Failed to sync Telegram bot commands")
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/telegram/webhook")
    async def telegram_webhook(  # noqa: PLR0911
        update: TelegramUpdate, request: Request
    ) -> dict[str, str]:
        """Handle Telegram webhook updates."""
        state_container: AppContainer = request.app.state.container
        message = update.message
        if message is None:
            return {"status": "ok"}
        if not _is_user_allowed(message.from_user.id, allowed_user_ids):
            await state_container.telegram_client.send_message(
                chat_id=message.chat.id, text="This bot is private."
            )
            return {"status": "ok"}

        photo = message.largest_photo()
        if photo is not None:
            await _handle_photo(state_container, message, photo, logger)
            return {"status": "ok"}

        command = match_command(message.text or "")
        if command is None:
            if message.text:
                await state_container.telegram_client.send_message(
                    chat_id=message.chat.id,
                    text="Send me a photo of a packaged product to analyze it.",
                )
            return {"status": "ok"}

        entry, argument = command
        user = state_container.user_service.ensure_user(message.from_user.id)
        if entry is BotCommand.START:
            text = WELCOME_TEXT
        elif entry is BotCommand.HELP:
            text = HELP_TEXT
        elif entry is BotCommand.PROFILE:
            text = await _handle_profile(state_container, user, argument, logger)
        elif entry is BotCommand.HISTORY:
            history = state_container.scan_ledger.history(user.id, HISTORY_LIMIT)
            products = {
                record.product_id: state_container.product_store.get(record.product_id)
                for record in history
                if record.product_id
            }
            text = _format_history(history, products)
        else:
            text = _format_totals(state_container.scan_ledger.totals(user.id))
        await state_container.telegram_client.send_message(
            chat_id=message.chat.id, text=text
        )
        return {"status": "ok"}

    return app


async def _handle_photo(
    state_container: AppContainer,
    message: TelegramMessage,
    photo: TelegramPhotoSize,
    logger: logging.Logger,
) -> None:
    """Run a scan for the photo and reply with the result."""
    user = state_container.user_service.ensure_user(message.from_user.id)
    try:
        await state_container.telegram_client.send_chat_action(message.chat.id)
    except Exception:
        logger.warning("Failed to send chat action", extra={"chat_id": message.chat.id})

    async def load_image() -> bytes:
        return await state_container.telegram_file_client.download_file_bytes(
            photo.file_id
        )

    result = await state_container.pipeline.run(
        ScanRequest(user_id=user.id, profile=user.profile, load_image=load_image)
    )
    for text in _format_scan_result(state_container, result):
        await state_container.telegram_client.send_message(
            chat_id=message.chat.id,
            text=text,
            reply_to_message_id=message.message_id,
        )


async def _handle_profile(
    state_container: AppContainer,
    user: UserRecord,
    description: str,
    logger: logging.Logger,
) -> str:
    """Show the profile, or replace it from a free-text description."""
    if not description:
        return _format_profile(user.profile) + (
            "\n\nTo change it, send /profile followed by a description."
        )
    usage = UsageRecord.zero()
    try:
        profile, usage = await state_container.user_service.extract_profile(description)
        state_container.user_service.update_profile(user, profile)
    except Exception as exc:
        if isinstance(exc, InferenceError):
            usage = exc.usage
        logger.exception(
            "Profile update failed for user %s, cost=%s", user.id, usage.rounded().cost
        )
        return _format_error(
            state_container, exc, "Sorry, I couldn't update your profile. Please try again."
        )
    logger.info("Profile updated for user %s, cost=%s", user.id, usage.rounded().cost)
    return "Profile saved.\n" + _format_profile(profile)


def _is_user_allowed(user_id: int, allowed: set[int] | None) -> bool:
    """Return true when the user is allowed to interact with the bot."""
    return allowed is None or user_id in allowed


def _format_error(state_container: AppContainer, exc: Exception, fallback: str) -> str:
    """Return a user-facing error message with local debug info."""
    if state_container.settings.environment == "local":
        detail = f"{type(exc).__name__}: {exc}".strip()
        if detail:
            return f"{fallback} (debug: {detail})"
    return fallback


def _format_scan_result(state_container: AppContainer, result: ScanResult) -> list[str]:
    """Render a scan result as one or two Telegram messages."""
    if result.outcome is ScanOutcome.REJECTED:
        return [
            "That doesn't look like a packaged product. "
            f"{result.rejection_reason or ''}".strip()
        ]
    if result.outcome is ScanOutcome.FAILED or result.product is None:
        exc = result.error or RuntimeError("scan failed")
        if isinstance(exc, PersistenceError):
            fallback = (
                "I analyzed the product but couldn't save the result. "
                "Please send the photo again."
            )
        else:
            fallback = "Sorry, I couldn't analyze that photo. Please try a clearer shot."
        return [_format_error(state_container, exc, fallback)]
    messages = [_format_product(result.product, result.cache_hit)]
    if result.compatibility is not None:
        messages.append(_format_compatibility(result.compatibility))
    return messages


def _format_product(product: Product, cache_hit: bool) -> str:
    """Format the ingredient breakdown of a product."""
    lines = [product.display_name]
    if product.health_score is not None:
        lines.append(f"Health score: {product.health_score}/100")
    ingredients = product.ingredients
    if ingredients is None or ingredients.is_empty():
        lines.append("No ingredient information found.")
    else:
        for label, group in (
            ("Good", ingredients.good),
            ("Okay", ingredients.okay),
            ("Bad", ingredients.bad),
        ):
            if group:
                lines.append(f"{label}:")
                lines.extend(_format_ingredient(item) for item in group)
    if cache_hit:
        lines.append("(from the product database)")
    return "\n".join(lines)


def _format_ingredient(item: Ingredient) -> str:
    return f"- {item.name}: {item.reason}" if item.reason else f"- {item.name}"


def _format_compatibility(result: CompatibilityResult) -> str:
    return f"Compatibility for you: {_LEVEL_LABELS[result.level]}\n{result.reason}"


def _format_profile(profile: HealthProfile) -> str:
    if profile.is_empty():
        return "Your health profile is empty."
    lines = ["Your health profile:"]
    for name, tags in profile.to_dict().items():
        if tags:
            lines.append(f"- {_PROFILE_LABELS[name]}: {', '.join(tags)}")
    return "\n".join(lines)


def _format_history(history: list[ScanRecord], products: dict) -> str:
    """Format recent scans for Telegram."""
    if not history:
        return "No scans yet. Send me a product photo."
    lines = ["Recent scans:"]
    for record in history:
        product = products.get(record.product_id)
        name = product.display_name if product else "Unknown product"
        verdict = (
            _LEVEL_LABELS[record.compatibility.level] if record.compatibility else "n/a"
        )
        lines.append(f"- {record.scanned_at.date()}: {name} (compatibility: {verdict})")
    return "\n".join(lines)


def _format_totals(totals: UserTotals) -> str:
    return (
        f"Scans: {totals.scan_count}\n"
        f"Analysis cost: ${totals.cumulative_cost:.4f}"
    )
