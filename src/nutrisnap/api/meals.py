"""Meal and summary API endpoints."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Annotated

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    Header,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)

from nutrisnap.api.meal_models import (
    MealResponse,
    MealUpdateRequest,
    NutritionSummaryResponse,
)
from nutrisnap.domain.models import UserRecord  # noqa: TC001
from nutrisnap.services.meals import (
    ImageUpload,
    MealValidationError,
    NewMeal,
    validate_tz_offset,
)

if TYPE_CHECKING:
    from nutrisnap.containers import AppContainer

router = APIRouter(tags=["meals"])

TzOffset = Annotated[int, Query(alias="tzOffset")]


def _container(request: Request) -> AppContainer:
    return request.app.state.container


async def require_user(
    request: Request,
    x_api_token: str | None = Header(default=None),
) -> UserRecord:
    """Resolve the calling user from the API token header."""
    user = _container(request).user_service.authenticate(x_api_token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return user


CurrentUser = Annotated[UserRecord, Depends(require_user)]


@router.post("/meals", status_code=status.HTTP_201_CREATED)
async def create_meal(  # noqa: PLR0913
    request: Request,
    background_tasks: BackgroundTasks,
    user: CurrentUser,
    meal_type: Annotated[str, Form(alias="mealType")],
    food_name: Annotated[str | None, Form(alias="foodName")] = None,
    brand_name: Annotated[str | None, Form(alias="brandName")] = None,
    description: Annotated[str | None, Form()] = None,
    quantity: Annotated[float | None, Form()] = None,
    unit: Annotated[str | None, Form()] = None,
    tz_offset: Annotated[int, Form(alias="tzOffset")] = 0,
    images: Annotated[list[UploadFile] | None, File()] = None,
) -> MealResponse:
    """Log a meal and analyze it after responding."""
    uploads = [
        ImageUpload(content=await upload.read(), content_type=upload.content_type)
        for upload in images or []
    ]
    new_meal = NewMeal(
        meal_type=meal_type,
        food_name=food_name,
        brand_name=brand_name,
        description=description,
        images=uploads,
        quantity=quantity,
        unit=unit,
        tz_offset_minutes=tz_offset,
    )
    service = _container(request).meal_service
    try:
        meal, job = service.create_meal(user.id, new_meal)
    except MealValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    background_tasks.add_task(service.reconcile, job)
    return MealResponse.from_meal(meal)


@router.get("/meals")
async def list_meals(
    request: Request,
    user: CurrentUser,
    date: str | None = None,
    tz_offset: TzOffset = 0,
) -> list[MealResponse]:
    """Return the caller's meals for a local calendar day."""
    container = _container(request)
    day = _resolve_day(container, date, tz_offset)
    meals = container.meal_service.list_day(user.id, day)
    return [MealResponse.from_meal(meal) for meal in meals]


@router.get("/meals/{meal_id}")
async def get_meal(meal_id: int, request: Request, user: CurrentUser) -> MealResponse:
    """Return a single meal, including pending placeholder values."""
    meal = _container(request).meal_service.get_meal(user.id, meal_id)
    if meal is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Meal not found")
    return MealResponse.from_meal(meal)


@router.patch("/meals/{meal_id}")
async def update_meal(
    meal_id: int,
    body: MealUpdateRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: CurrentUser,
) -> MealResponse:
    """Edit a meal, re-running analysis or image synthesis when needed."""
    service = _container(request).meal_service
    try:
        result = service.update_meal(user.id, meal_id, body.to_changes())
    except MealValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Meal not found")
    meal, job = result
    if job is not None:
        background_tasks.add_task(service.reconcile, job)
    return MealResponse.from_meal(meal)


@router.delete("/meals/{meal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meal(meal_id: int, request: Request, user: CurrentUser) -> Response:
    """Delete a meal owned by the caller."""
    if not _container(request).meal_service.delete_meal(user.id, meal_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Meal not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/summary")
async def daily_summary(
    request: Request,
    user: CurrentUser,
    date: str | None = None,
    tz_offset: TzOffset = 0,
) -> NutritionSummaryResponse:
    """Return nutrition totals for a local calendar day."""
    container = _container(request)
    day = _resolve_day(container, date, tz_offset)
    totals = container.stats_service.get_day(user.id, day)
    return NutritionSummaryResponse.from_totals(totals)


@router.get("/summary/month")
async def monthly_summary(
    request: Request,
    user: CurrentUser,
    year: int,
    month: int,
    tz_offset: TzOffset = 0,
) -> dict[str, NutritionSummaryResponse]:
    """Return nutrition totals for each day of a month keyed by ISO date."""
    container = _container(request)
    try:
        validate_tz_offset(tz_offset)
        daily = container.stats_service.get_month(user.id, year, month)
    except MealValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {
        entry.day.isoformat(): NutritionSummaryResponse.from_totals(entry.totals)
        for entry in daily
    }


def _resolve_day(container: AppContainer, raw: str | None, tz_offset: int) -> date:
    try:
        if raw is None:
            return container.meal_service.today(tz_offset)
        validate_tz_offset(tz_offset)
        return date.fromisoformat(raw)
    except MealValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            detail="Invalid date format. Use ISO format (YYYY-MM-DD)",
        ) from exc
