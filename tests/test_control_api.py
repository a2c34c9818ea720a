from __future__ import annotations

from app.domain.exceptions import StaleStateError, StoreError
from app.schemas import ErrorResponse, SuccessResponse


def test_get_control_returns_document(client):
    response = client.get("/api/v1/control")

    assert response.status_code == 200
    payload = SuccessResponse[dict].model_validate(response.get_json())
    assert payload.ok is True
    assert set(payload.data) >= {"light", "fan_positive", "fan_negative", "pressure_washer", "updated_at"}
    assert payload.data["light"] == {"mode": "AUTO", "state": "OFF"}


def test_unversioned_path_is_rewritten(client):
    response = client.get("/api/control")

    assert response.status_code == 200
    assert response.get_json()["ok"] is True


def test_post_command_updates_document(client):
    response = client.post("/api/v1/control", json={"device": "light", "mode": "FORCE_ON"})

    assert response.status_code == 200
    payload = SuccessResponse[dict].model_validate(response.get_json())
    assert payload.message == "light set to FORCE_ON"
    assert payload.data["light"] == {"mode": "FORCE_ON", "state": "ON"}


def test_read_after_write_over_http(client):
    client.get("/api/v1/control")

    client.post("/api/v1/control", json={"device": "fan_positive", "mode": "FORCE_ON"})
    data = client.get("/api/v1/control").get_json()["data"]

    assert data["fan_positive"]["state"] == "ON"


def test_mode_is_case_insensitive(client):
    response = client.post("/api/v1/control", json={"device": "fan_negative", "mode": "force_off"})

    assert response.status_code == 200
    assert response.get_json()["message"] == "fan_negative set to FORCE_OFF"


def test_washer_with_timer(client):
    response = client.post(
        "/api/v1/control",
        json={"device": "pressure_washer", "mode": "FORCE_ON", "timer_duration": 90},
    )

    washer = response.get_json()["data"]["pressure_washer"]
    assert response.status_code == 200
    assert washer["state"] == "ON"
    assert washer["timer_duration"] == 90
    assert washer["timer_expires_at"] is not None


def test_washer_auto_is_rejected(client, container):
    before = container.control_repo.load()

    response = client.post("/api/v1/control", json={"device": "pressure_washer", "mode": "AUTO"})

    assert response.status_code == 400
    payload = ErrorResponse.model_validate(response.get_json())
    assert payload.message == "AUTO mode is not permitted for pressure_washer"
    assert container.control_repo.load() == before


def test_unknown_device_is_rejected(client):
    response = client.post("/api/v1/control", json={"device": "heater", "mode": "FORCE_ON"})

    assert response.status_code == 400
    assert response.get_json()["error"]["message"] == "Unknown device: heater"


def test_unknown_mode_is_rejected(client):
    response = client.post("/api/v1/control", json={"device": "light", "mode": "DIM"})

    assert response.status_code == 400
    assert response.get_json()["message"] == "Unknown mode: DIM"


def test_missing_body_is_rejected(client):
    response = client.post("/api/v1/control")

    assert response.status_code == 400
    assert response.get_json()["ok"] is False


def test_non_positive_duration_is_rejected(client):
    response = client.post(
        "/api/v1/control",
        json={"device": "pressure_washer", "mode": "FORCE_ON", "timer_duration": 0},
    )

    assert response.status_code == 400
    assert "timer_duration" in response.get_json()["message"]


def test_zero_duration_is_ignored_outside_washer_force_on(client):
    light = client.post("/api/v1/control", json={"device": "light", "mode": "FORCE_ON", "timer_duration": 0})
    washer = client.post(
        "/api/v1/control",
        json={"device": "pressure_washer", "mode": "FORCE_OFF", "timer_duration": 0},
    )

    assert light.status_code == 200
    assert light.get_json()["data"]["light"]["state"] == "ON"
    assert washer.status_code == 200
    assert washer.get_json()["data"]["pressure_washer"]["state"] == "OFF"


def test_boolean_duration_is_rejected(client):
    response = client.post(
        "/api/v1/control",
        json={"device": "pressure_washer", "mode": "FORCE_ON", "timer_duration": True},
    )

    assert response.status_code == 400
    assert "timer_duration" in response.get_json()["message"]
    state = client.get("/api/v1/control").get_json()["data"]
    assert state["pressure_washer"]["state"] == "OFF"


def test_duration_above_maximum_is_rejected(client):
    response = client.post(
        "/api/v1/control",
        json={"device": "pressure_washer", "mode": "FORCE_ON", "timer_duration": 7200},
    )

    assert response.status_code == 400
    assert "3600" in response.get_json()["message"]


def test_store_failure_returns_generic_500(client, container, monkeypatch):
    def broken_save(*_args, **_kwargs):
        raise StoreError("disk I/O error at /var/lib/control.db")

    monkeypatch.setattr(container.control_repo, "save", broken_save)

    response = client.post("/api/v1/control", json={"device": "light", "mode": "FORCE_ON"})

    assert response.status_code == 500
    payload = ErrorResponse.model_validate(response.get_json())
    assert payload.message == "An internal error occurred"
    assert "/var/lib" not in response.get_data(as_text=True)


def test_persistent_conflict_returns_409(client, container, monkeypatch):
    def always_stale(*_args, **_kwargs):
        raise StaleStateError(1, 2)

    monkeypatch.setattr(container.control_repo, "save", always_stale)

    response = client.post("/api/v1/control", json={"device": "light", "mode": "FORCE_ON"})

    assert response.status_code == 409
    assert response.get_json()["ok"] is False


def test_unknown_api_route_returns_json_404(client):
    response = client.get("/api/v1/nope")

    assert response.status_code == 404
    assert response.get_json()["ok"] is False
