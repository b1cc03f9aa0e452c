import pytest
from factories import build_store, csv_bytes, f1_header, f1_row, f3_header, f3_row
from fastapi.testclient import TestClient

from apps.api.guildboard.auth_tokens import create_access_token
from apps.api.guildboard.cache import MetricsCache
from apps.api.guildboard.deps import get_cache, get_store
from apps.api.guildboard.main import create_app
from apps.api.guildboard.season_writer import SeasonWriteCoordinator, UploadedFile
from apps.api.guildboard.seasons import set_season_servers


ADMIN_UID = "uid-admin"
MEMBER_UID = "uid-member"


def _auth(uid):
    token, _ = create_access_token(uid=uid, email=f"{uid}@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def store():
    store = build_store()
    store.set("users", "1", {"uid": ADMIN_UID, "role": "admin", "nickname": "Boss", "highestPower": 80_000_000})
    store.set("users", "2", {"uid": MEMBER_UID, "nickname": "Grunt", "labels": ["infantry"]})
    return store


@pytest.fixture()
def client(store):
    cache = MetricsCache(enabled=False)
    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_cache] = lambda: cache
    return TestClient(app, raise_server_exceptions=False)


def _seed_season(store):
    set_season_servers(store, "S5", [249], [300])
    coordinator = SeasonWriteCoordinator(store, home_server=249)
    coordinator.upload(
        [
            UploadedFile("home.csv", csv_bytes([f1_header(), f1_row(1, merits="1,000"), f1_row(2)])),
            UploadedFile("scan.csv", csv_bytes([f3_header(), f3_row(900, server=300)])),
        ],
        "S5",
        "start",
        [249, 300],
    )
    coordinator.upload(
        [
            UploadedFile("home.csv", csv_bytes([f1_header(), f1_row(1, merits="2,500"), f1_row(2, merits=10)])),
            UploadedFile("scan.csv", csv_bytes([f3_header(), f3_row(900, server=300, merits=80)])),
        ],
        "S5",
        "2024-05-08",
        [249, 300],
    )


def test_health_reports_cache_status(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["cache"]["enabled"] is False


def test_upload_requires_authentication(client):
    response = client.post("/season/upload", data={"season_name": "S5", "title": "start"})
    assert response.status_code == 401


def test_upload_requires_admin_role(client):
    response = client.post(
        "/season/upload",
        data={"season_name": "S5", "title": "start"},
        files=[("files", ("week.csv", csv_bytes([f1_header(), f1_row(1)]), "text/csv"))],
        headers=_auth(MEMBER_UID),
    )
    assert response.status_code == 403


def test_admin_upload_writes_snapshot(client, store):
    response = client.post(
        "/season/upload",
        data={"season_name": "S5", "title": "2024-05-01", "valid_servers": "249"},
        files=[("files", ("week.csv", csv_bytes([f1_header(), f1_row(1), f1_row(77)]), "text/csv"))],
        headers=_auth(ADMIN_UID),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["recordCount"] == 1
    assert body["skipped"] == {"not_in_roster": 1}
    assert set(store.list_documents("sheets/S5/2024-05-01")) == {"1", "total"}


def test_upload_rejects_invalid_title(client):
    response = client.post(
        "/season/upload",
        data={"season_name": "S5", "title": "midseason"},
        files=[("files", ("week.csv", csv_bytes([f1_header(), f1_row(1)]), "text/csv"))],
        headers=_auth(ADMIN_UID),
    )
    assert response.status_code == 400
    assert "error" in response.json()


def test_upload_without_files_is_bad_request(client):
    response = client.post(
        "/season/upload",
        data={"season_name": "S5", "title": "start"},
        headers=_auth(ADMIN_UID),
    )
    assert response.status_code == 400


def test_set_season_servers_drops_allies_from_enemies(client, store):
    response = client.post(
        "/season/servers",
        json={"seasonName": "S5", "allies": [249, 250], "enemies": [250, 300]},
        headers=_auth(ADMIN_UID),
    )
    assert response.status_code == 200
    assert response.json() == {"seasonName": "S5", "allies": [249, 250], "enemies": [300]}
    assert store.get("sheets", "S5")["enemies"] == [300]


def test_season_names_and_dates(client, store):
    _seed_season(store)
    store.set("sheets", "S5", {"season_name": "S5", "season_end": "2024-06-01T00:00:00Z"}, merge=True)
    store.set("sheets", "S4", {"season_name": "S4", "season_end": "2024-01-01T00:00:00Z"})

    names = client.get("/season/names").json()
    assert sorted(names["sheetIds"]) == ["S4", "S5"]
    assert names["current_season"] == "S5"

    dates = client.get("/season/dates", params={"season_name": "S5"})
    assert dates.json() == {"2024-05-08": "Week 1"}


def test_season_dates_unknown_season_is_404(client):
    response = client.get("/season/dates", params={"season_name": "nope"})
    assert response.status_code == 404
    assert response.json() == {"error": "No sheet found with the provided season name"}


def test_metrics_require_authentication(client):
    assert client.get("/metrics/individual", params={"season_name": "S5", "start_date": "start"}).status_code == 401


def test_individual_metrics_diff_home_server(client, store):
    _seed_season(store)
    response = client.get(
        "/metrics/individual",
        params={"season_name": "S5", "start_date": "start", "end_date": "2024-05-08"},
        headers=_auth(MEMBER_UID),
    )
    assert response.status_code == 200
    grid = response.json()["formattedGridData"]["MERITS"]
    assert [row["id"] for row in grid] == ["1", "2"]
    # start snapshots carry zero merits
    assert grid[0]["value"] == "2,500"
    assert grid[1]["value"] == "10"


def test_kvk_season_partitions_players(client, store):
    _seed_season(store)
    response = client.get(
        "/metrics/kvk/season",
        params={"season_name": "S5", "start_date": "start", "end_date": "2024-05-08"},
        headers=_auth(MEMBER_UID),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert sorted(data["allies"]) == ["1", "2"]
    assert list(data["enemies"]) == ["900"]
    assert data["enemies"]["900"]["merits"] == 80


def test_kvk_season_summary_ranks_and_aggregates(client, store):
    _seed_season(store)
    response = client.get(
        "/metrics/kvk/season/summary",
        params={"season_name": "S5", "start_date": "start", "end_date": "2024-05-08", "top_n": 5},
        headers=_auth(MEMBER_UID),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["rankings"]["allies"]["merits"] == [
        {"userId": "1", "server": 249, "merits": 2500},
        {"userId": "2", "server": 249, "merits": 10},
    ]
    assert body["serverCounts"]["enemies"]["merits"] == {"labels": ["300"], "series": [1]}
    assert set(body["serverTotals"]) == {"249", "300"}


def test_kvk_overview_reports_totals_against_start(client, store):
    _seed_season(store)
    response = client.get("/metrics/kvk/overview", params={"season_name": "S5"}, headers=_auth(MEMBER_UID))
    assert response.status_code == 200
    assert response.json()["data"]["2024-05-08"]["249"]["merits"] == 2510


def test_unknown_season_returns_error_body(client):
    response = client.get(
        "/metrics/kvk/season",
        params={"season_name": "missing", "start_date": "start"},
        headers=_auth(MEMBER_UID),
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Season document not found"}


def test_missing_parameters_are_bad_request(client):
    response = client.get("/metrics/kvk/season", params={"season_name": "S5"}, headers=_auth(MEMBER_UID))
    assert response.status_code == 400


def test_all_users_projects_profile_fields(client):
    response = client.get("/user/all", headers=_auth(MEMBER_UID))
    assert response.status_code == 200
    users = response.json()
    assert users["2"]["labels"] == ["infantry"]
    assert users["2"]["isInfantryGroup"] is False
    assert users["1"]["nickname"] == "Boss"
    assert "role" not in users["1"]


def test_changing_servers_drops_cached_season_metrics(store):
    cache = MetricsCache(enabled=True, redis_url=None)
    cache.init()
    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_cache] = lambda: cache
    client = TestClient(app, raise_server_exceptions=False)
    _seed_season(store)
    params = {"season_name": "S5", "start_date": "start", "end_date": "2024-05-08"}

    before = client.get("/metrics/kvk/season", params=params, headers=_auth(MEMBER_UID)).json()["data"]
    assert list(before["enemies"]) == ["900"]
    assert cache.status()["memoryEntries"] == 1

    response = client.post(
        "/season/servers",
        json={"seasonName": "S5", "allies": [249, 300], "enemies": []},
        headers=_auth(ADMIN_UID),
    )
    assert response.status_code == 200
    assert cache.status()["memoryEntries"] == 0

    after = client.get("/metrics/kvk/season", params=params, headers=_auth(MEMBER_UID)).json()["data"]
    assert sorted(after["allies"]) == ["1", "2", "900"]
    assert after["enemies"] == {}
