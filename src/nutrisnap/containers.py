"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from nutrisnap.adapters.openai_analysis_client import OpenAIAnalysisClient
from nutrisnap.adapters.openai_image_client import OpenAIImageClient
from nutrisnap.adapters.supabase_meal_repository import SupabaseMealRepository
from nutrisnap.adapters.supabase_user_repository import SupabaseUserRepository
from nutrisnap.config import Settings
from nutrisnap.services.analysis import NutritionAnalyzer
from nutrisnap.services.images import ImageSynthesizer
from nutrisnap.services.meals import MealService
from nutrisnap.services.notifications import NotificationChannel
from nutrisnap.services.stats import StatsService
from nutrisnap.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    user_service: UserService
    meal_service: MealService
    stats_service: StatsService
    notification_channel: NotificationChannel
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    user_repository = SupabaseUserRepository(supabase_client)
    meal_repository = SupabaseMealRepository(supabase_client)
    analysis_client = OpenAIAnalysisClient.create(
        resolved_settings.openai_api_key,
        timeout=resolved_settings.openai_timeout_seconds,
    )
    image_client = OpenAIImageClient.create(
        resolved_settings.openai_api_key,
        timeout=resolved_settings.openai_timeout_seconds,
    )
    analyzer = NutritionAnalyzer(
        client=analysis_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort or None,
        store=resolved_settings.openai_store,
    )
    synthesizer = ImageSynthesizer(
        client=image_client,
        model=resolved_settings.openai_image_model,
        size=resolved_settings.openai_image_size,
    )
    notification_channel = NotificationChannel()
    meal_service = MealService(
        repository=meal_repository,
        analyzer=analyzer,
        synthesizer=synthesizer,
        notifications=notification_channel,
        max_images=resolved_settings.max_images_per_meal,
        max_image_bytes=resolved_settings.max_image_bytes,
    )

    async def close_resources() -> None:
        await analysis_client.close()
        await image_client.close()

    return AppContainer(
        settings=resolved_settings,
        user_service=UserService(user_repository),
        meal_service=meal_service,
        stats_service=StatsService(meal_repository),
        notification_channel=notification_channel,
        close_resources=close_resources,
    )
