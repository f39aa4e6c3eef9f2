from fastapi.testclient import TestClient

import telemed.main


def test_module_app_mounts_telemed_router():
    paths = {route.path for route in telemed.main.app.routes}

    assert "/api/telemed/video-call-request" in paths
    assert "/api/telemed/events" in paths


def test_module_app_serves_requests_with_default_settings():
    client = TestClient(telemed.main.app)

    assert client.get("/healthz").json() == {"status": "ok"}
    created = client.post("/api/telemed/video-call-request", json={"callerName": "John Doe"})
    assert created.status_code == 200
    request_id = created.json()["requestId"]
    assert client.get(f"/api/telemed/video-call-status/{request_id}").json()["status"] == "pending"
