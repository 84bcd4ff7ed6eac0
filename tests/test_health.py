def test_health_reports_status_uptime_and_timestamp(client):
    res = client.get("/auth/health")
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["status"] == "ok"
    assert data["uptime"] >= 0
    assert isinstance(data["timestamp"], int)


def test_uptime_never_decreases_and_nothing_changes(client, provider, dispatcher):
    uptimes = [client.get("/auth/health").get_json()["data"]["uptime"] for _ in range(5)]
    assert uptimes == sorted(uptimes)
    assert provider.calls == []
    assert dispatcher.sent == []


def test_unknown_route_uses_error_envelope(client):
    res = client.get("/auth/nope")
    assert res.status_code == 404
    assert res.get_json() == {"error": {"message": "Resource not found"}}


def test_root_points_to_docs(client):
    res = client.get("/")
    assert res.status_code == 200
    assert res.get_json()["health"] == "/auth/health"
