import pytest
from fastapi.testclient import TestClient

from conftest import EMPTY_MENU_HTML, FakePortalClient

from knue_portal.api import build_services, create_app
from knue_portal.config import API_VERSION, TRIP_PATH
from knue_portal.exceptions import UpstreamUnavailableError
from knue_portal.models import LoginResult
from knue_portal.storage import MemoryStore


@pytest.fixture
def portal(menu_week_html: str) -> FakePortalClient:
    return FakePortalClient(menu_week_html)


@pytest.fixture
def services(portal: FakePortalClient):
    return build_services(store=MemoryStore(), client=portal)


@pytest.fixture
def api(services):
    app = create_app(services, initial_fetch=False, schedule_weekly=False)
    with TestClient(app) as client:
        yield client


def _login(api: TestClient) -> dict:
    response = api.post("/auth/login", json={"userNo": "12345", "password": "secret"})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_root(api: TestClient):
    assert api.get("/").json() == {"version": API_VERSION, "status": "running"}


def test_menu_routes(api: TestClient, portal: FakePortalClient):
    menu = api.get("/menu").json()
    assert set(menu) == {"staff", "dormitory", "lastUpdated"}
    assert menu["staff"]["monday"]["lunch"] == "잡곡밥,된장찌개,제육볶음,김치"

    staff = api.get("/menu/cafeteria/staff").json()
    assert staff["tuesday"]["lunch"] == "라면,김밥"

    monday = api.get("/menu/day/monday").json()
    assert monday["dormitory"]["breakfast"] == "토스트,우유,시리얼"

    today = api.get("/menu/day/today").json()
    assert set(today) == {"staff", "dormitory"}

    assert portal.menu_calls == 1, "All reads after the first are served from cache"


@pytest.mark.parametrize("path", ["/menu/cafeteria/student", "/menu/day/funday"])
def test_menu_validation_errors(api: TestClient, path: str):
    response = api.get(path)
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


def test_menu_upstream_failure_is_502(api: TestClient, portal: FakePortalClient):
    portal.html = UpstreamUnavailableError("portal timeout")
    response = api.get("/menu")
    assert response.status_code == 502
    assert response.json() == {"error": "UpstreamUnavailable", "message": "portal timeout"}


def test_admin_refresh_forces_fetch(api: TestClient, portal: FakePortalClient):
    api.get("/menu")
    response = api.post("/admin/menu/refresh")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Menu data refreshed successfully"
    assert body["data"]["lastUpdated"]
    assert portal.menu_calls == 2


def test_admin_refresh_with_empty_menu_schedules_retry(api: TestClient, portal, services):
    portal.html = EMPTY_MENU_HTML
    assert api.post("/admin/menu/refresh").status_code == 200
    assert services.menu.retry.pending


def test_login_verify_logout(api: TestClient):
    tokens = _login(api)
    assert set(tokens) == {"accessToken", "refreshToken", "expiresIn"}

    verify = api.get("/auth/verify", headers=_auth(tokens["accessToken"]))
    assert verify.json() == {"valid": True, "userId": "12345"}

    logout = api.post(
        "/auth/logout",
        json={"refreshToken": tokens["refreshToken"]},
        headers=_auth(tokens["accessToken"]),
    )
    assert logout.status_code == 200

    revoked = api.get("/auth/verify", headers=_auth(tokens["accessToken"]))
    assert revoked.status_code == 401
    assert revoked.json()["error"] == "TokenRevoked"


def test_logout_without_body(api: TestClient):
    tokens = _login(api)
    response = api.post("/auth/logout", headers=_auth(tokens["accessToken"]))
    assert response.status_code == 200


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer junk"}])
def test_verify_rejects_missing_or_bad_bearer(api: TestClient, headers: dict):
    response = api.get("/auth/verify", headers=headers)
    assert response.status_code == 401
    assert response.json()["error"] == "TokenInvalid"


def test_login_rejected_is_401(api: TestClient, portal: FakePortalClient):
    portal.login_result = LoginResult(status=200, cookies=())
    response = api.post("/auth/login", json={"userNo": "12345", "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["error"] == "AuthenticationError"


def test_login_missing_fields_is_400(api: TestClient):
    response = api.post("/auth/login", json={"userNo": "12345"})
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


def test_refresh_token_flow(api: TestClient):
    tokens = _login(api)
    response = api.post(
        "/auth/refresh-token",
        json={"refreshToken": tokens["refreshToken"], "userNo": "12345", "password": "secret"},
    )
    assert response.status_code == 200
    renewed = response.json()["data"]
    assert renewed["refreshToken"] != tokens["refreshToken"]

    unknown = api.post(
        "/auth/refresh-token",
        json={"refreshToken": "nope", "userNo": "12345", "password": "secret"},
    )
    assert unknown.status_code == 401
    assert unknown.json()["error"] == "RefreshNotFound"


def test_trip_routes(api: TestClient, portal: FakePortalClient, trip_history_html: str):
    token = _login(api)["accessToken"]
    portal.pages[f"{TRIP_PATH}?menuId=341&tab=2"] = trip_history_html
    portal.post_response = trip_history_html

    listing = api.get("/trip/list", headers=_auth(token)).json()
    assert listing["tripList"][0]["tripTargetPlace"] == "서울"

    info = api.get("/trip/request-info", headers=_auth(token)).json()
    assert info == {"enteranceInfoSeq": "", "hakbeon": ""}

    requested = api.post(
        "/trip/request",
        json={
            "tripType": "1",
            "tripTargetPlace": "서울",
            "startDate": "2025-03-14",
            "endDate": "2025-03-16",
            "enteranceInfoSeq": "555",
            "hakbeon": "2024001",
        },
        headers=_auth(token),
    )
    assert requested.json() == {"success": True}

    cancelled = api.post(
        "/trip/cancel",
        json={"seq": "1001", "startDate": "2025-03-14", "endDate": "2025-03-16"},
        headers=_auth(token),
    )
    assert cancelled.json() == {"success": False}


def test_trip_routes_require_bearer(api: TestClient):
    assert api.get("/trip/list").status_code == 401


def test_unexpected_error_is_500(services, portal: FakePortalClient):
    portal.html = RuntimeError("boom")
    app = create_app(services, initial_fetch=False, schedule_weekly=False)
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/menu")

    assert response.status_code == 500
    assert response.json() == {
        "error": "InternalServerError",
        "message": "An unexpected error occurred",
    }


def test_startup_survives_failed_initial_fetch(services, portal: FakePortalClient):
    portal.html = UpstreamUnavailableError("down")
    app = create_app(services, initial_fetch=True, schedule_weekly=False)
    with TestClient(app) as client:
        assert client.get("/").status_code == 200
    assert portal.menu_calls == 1
