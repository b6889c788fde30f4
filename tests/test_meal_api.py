"""Tests for meal and summary endpoints."""

from fastapi.testclient import TestClient

from nutrisnap.api.app import create_app
from nutrisnap.containers import AppContainer
from tests.conftest import API_TOKEN, JPEG_BYTES, MealServiceHarness

HEADERS = {"X-Api-Token": API_TOKEN}
BOB_HEADERS = {"X-Api-Token": "token-bob"}


def _post_photo(client: TestClient, **data: str) -> dict:
    response = client.post(
        "/meals",
        data={"mealType": "lunch", **data},
        files=[("images", ("meal.jpg", JPEG_BYTES, "image/jpeg"))],
        headers=HEADERS,
    )
    assert response.status_code == 201
    return response.json()


def test_create_meal_returns_pending_placeholder(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    body = _post_photo(client, foodName="Pizza")

    assert body["analysisPending"] is True
    assert body["calories"] == 0
    assert body["foodName"] == "Pizza"
    assert body["userProvidedImage"] is True
    assert body["imageUrl"].startswith("data:image/jpeg;base64,")
    assert body["imageUrls"] == [body["imageUrl"]]


def test_meal_is_reconciled_after_response(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    created = _post_photo(client)

    response = client.get(f"/meals/{created['id']}", headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["analysisPending"] is False
    assert body["calories"] == 105
    assert body["foodName"] == "Banana"
    assert body["unit"] == "count"


def test_description_only_meal_gets_image(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    created = client.post(
        "/meals",
        data={"mealType": "snack", "description": "a banana"},
        headers=HEADERS,
    )
    assert created.status_code == 201
    assert created.json()["imageUrl"] is None

    body = client.get(f"/meals/{created.json()['id']}", headers=HEADERS).json()
    assert body["imageUrl"].startswith("data:image/png;base64,")
    assert body["userProvidedImage"] is False


def test_requests_without_token_are_rejected(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    assert client.get("/meals").status_code == 401
    assert client.get("/summary", headers={"X-Api-Token": "nope"}).status_code == 401


def test_create_meal_validation_errors(
    container: AppContainer, harness: MealServiceHarness
) -> None:
    client = TestClient(create_app(container))

    missing_input = client.post(
        "/meals", data={"mealType": "lunch", "description": "  "}, headers=HEADERS
    )
    bad_type = client.post(
        "/meals", data={"mealType": "brunch", "description": "eggs"}, headers=HEADERS
    )
    bad_offset = client.post(
        "/meals",
        data={"mealType": "lunch", "description": "eggs", "tzOffset": "5000"},
        headers=HEADERS,
    )

    assert missing_input.status_code == 400
    assert bad_type.status_code == 400
    assert bad_offset.status_code == 400
    assert harness.repository.meals == {}


def test_list_meals_for_local_day(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    created = _post_photo(client)

    today = client.get("/meals", headers=HEADERS)
    by_date = client.get("/meals", params={"date": "2024-05-10"}, headers=HEADERS)
    other_day = client.get("/meals", params={"date": "2024-05-09"}, headers=HEADERS)
    far_east = client.get("/meals", params={"tzOffset": -720}, headers=HEADERS)

    assert [meal["id"] for meal in today.json()] == [created["id"]]
    assert [meal["id"] for meal in by_date.json()] == [created["id"]]
    assert other_day.json() == []
    # 12:00 UTC is already the next day at UTC+12.
    assert far_east.json() == []


def test_list_meals_rejects_malformed_date(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get("/meals", params={"date": "05/10/2024"}, headers=HEADERS)

    assert response.status_code == 400


def test_daily_and_monthly_summary(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    _post_photo(client)
    _post_photo(client)

    daily = client.get("/summary", params={"date": "2024-05-10"}, headers=HEADERS)
    monthly = client.get(
        "/summary/month", params={"year": 2024, "month": 5}, headers=HEADERS
    )

    assert daily.json() == {"calories": 210, "fat": 0, "carbs": 54, "protein": 2}
    month = monthly.json()
    assert len(month) == 31
    assert month["2024-05-10"]["calories"] == 210
    assert month["2024-05-01"] == {"calories": 0, "fat": 0, "carbs": 0, "protein": 0}


def test_monthly_summary_rejects_invalid_month(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get(
        "/summary/month", params={"year": 2024, "month": 0}, headers=HEADERS
    )

    assert response.status_code == 400


def test_monthly_summary_rejects_out_of_range_year(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get(
        "/summary/month", params={"year": 9999, "month": 12}, headers=HEADERS
    )

    assert response.status_code == 400


def test_patch_meal_applies_edit(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    created = _post_photo(client)

    response = client.patch(
        f"/meals/{created['id']}",
        json={"mealType": "dinner", "calories": 320},
        headers=HEADERS,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["mealType"] == "dinner"
    assert body["calories"] == 320
    assert body["analysisPending"] is False


def test_patch_with_new_image_reanalyzes(
    container: AppContainer, harness: MealServiceHarness
) -> None:
    client = TestClient(create_app(container))
    created = client.post(
        "/meals",
        data={"mealType": "snack", "description": "a banana"},
        headers=HEADERS,
    ).json()
    photo = "data:image/jpeg;base64,bmV3LXBob3Rv"

    response = client.patch(
        f"/meals/{created['id']}", json={"imageUrl": photo}, headers=HEADERS
    )

    assert response.status_code == 200
    assert response.json()["analysisPending"] is True
    body = client.get(f"/meals/{created['id']}", headers=HEADERS).json()
    assert body["userProvidedImage"] is True
    assert body["imageUrl"] == photo
    assert body["analysisPending"] is False
    assert harness.analysis_client.calls[-1]["image_data_url"] == photo


def test_patch_rejects_bad_input(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    created = _post_photo(client)

    bad_type = client.patch(
        f"/meals/{created['id']}", json={"mealType": "tea"}, headers=HEADERS
    )
    unknown_field = client.patch(
        f"/meals/{created['id']}", json={"userId": 2}, headers=HEADERS
    )
    missing = client.patch("/meals/999", json={"mealType": "lunch"}, headers=HEADERS)

    assert bad_type.status_code == 400
    assert unknown_field.status_code == 422
    assert missing.status_code == 404


def test_delete_meal_then_not_found(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    created = _post_photo(client)

    deleted = client.delete(f"/meals/{created['id']}", headers=HEADERS)
    fetched = client.get(f"/meals/{created['id']}", headers=HEADERS)
    deleted_again = client.delete(f"/meals/{created['id']}", headers=HEADERS)

    assert deleted.status_code == 204
    assert fetched.status_code == 404
    assert deleted_again.status_code == 404


def test_meals_are_scoped_to_owner(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    created = _post_photo(client)

    fetched = client.get(f"/meals/{created['id']}", headers=BOB_HEADERS)
    deleted = client.delete(f"/meals/{created['id']}", headers=BOB_HEADERS)
    listed = client.get("/meals", headers=BOB_HEADERS)

    assert fetched.status_code == 404
    assert deleted.status_code == 404
    assert listed.json() == []


def test_websocket_receives_meal_updated(container: AppContainer) -> None:
    with (
        TestClient(create_app(container)) as client,
        client.websocket_connect("/ws") as websocket,
    ):
        created = _post_photo(client)

        frame = websocket.receive_json()

    assert frame == {"type": "meal_updated", "mealId": created["id"]}


def test_health_endpoint(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_store_failure_returns_server_error(
    container: AppContainer, harness: MealServiceHarness
) -> None:
    client = TestClient(create_app(container), raise_server_exceptions=False)
    created = _post_photo(client)
    harness.repository.fail_updates = True

    response = client.patch(
        f"/meals/{created['id']}", json={"mealType": "dinner"}, headers=HEADERS
    )

    assert response.status_code == 500
    assert response.json()["detail"].startswith("Internal server error")
