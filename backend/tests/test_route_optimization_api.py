"""
Route optimization, prediction model and health API tests.
"""

import pytest

from backend.app.models.prediction_training_sample import PredictionTrainingSample

T1 = {"X-Tenant-ID": "t1"}

ROUTE_BODY = {
    "origin": {"latitude": 41.00, "longitude": 29.00},
    "destination": {"latitude": 41.10, "longitude": 29.10},
    "stops": [
        {"stop_id": "s1", "location": {"latitude": 41.02, "longitude": 29.01}, "priority": 1},
        {"stop_id": "s2", "location": {"latitude": 41.05, "longitude": 29.05}, "priority": 2},
    ],
    "vehicle_type": "truck",
    "departure_time": "2026-03-02T10:00:00Z",
}

SAMPLE = {
    "route_id": "r-done",
    "total_distance_km": 42.0,
    "traffic_level": 1.0,
    "weather_severity": 1.0,
    "hour_of_day": 10,
    "day_of_week": 0,
    "vehicle_type_flag": 4,
    "driver_experience": 1.0,
    "stop_count": 3,
    "actual_duration_min": 75.0,
    "actual_fuel_liters": 11.5,
    "on_time": True,
}


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "up"


@pytest.mark.asyncio
async def test_optimize_route(client):
    response = await client.post("/v1/routes/r1/optimize", json=ROUTE_BODY, headers=T1)

    assert response.status_code == 200
    body = response.json()
    assert body["route_id"] == "r1"
    assert body["tenant_id"] == "t1"
    assert [w["stop_id"] for w in body["waypoints"]] == [None, "s2", "s1", None]
    assert body["vehicle_type"] == "truck"
    assert body["prediction"]["method"] == "fallback"
    assert len(body["alternative_routes"]) == 3
    assert 0 <= body["optimization_score"] <= 100


@pytest.mark.asyncio
async def test_optimize_is_idempotent_until_invalidated(client):
    first = await client.post("/v1/routes/r1/optimize", json=ROUTE_BODY, headers=T1)
    second = await client.post("/v1/routes/r1/optimize", json=ROUTE_BODY, headers=T1)
    assert first.json() == second.json()

    deleted = await client.delete("/v1/routes/r1/optimization", headers=T1)
    assert deleted.json() == {"route_id": "r1", "invalidated": True}

    again = await client.delete("/v1/routes/r1/optimization", headers=T1)
    assert again.json()["invalidated"] is False

    third = await client.post("/v1/routes/r1/optimize", json=ROUTE_BODY, headers=T1)
    assert third.status_code == 200
    assert third.json()["route_id"] == "r1"


@pytest.mark.asyncio
async def test_direct_route(client):
    body = dict(ROUTE_BODY, stops=[])
    response = await client.post("/v1/routes/direct/optimize", json=body, headers=T1)

    assert response.status_code == 200
    assert [w["kind"] for w in response.json()["waypoints"]] == ["origin", "destination"]


@pytest.mark.asyncio
async def test_invalid_coordinates_rejected(client):
    body = dict(ROUTE_BODY, origin={"latitude": 95.0, "longitude": 29.0})
    response = await client.post("/v1/routes/r1/optimize", json=body, headers=T1)

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_missing_destination_rejected(client):
    body = {k: v for k, v in ROUTE_BODY.items() if k != "destination"}
    response = await client.post("/v1/routes/r1/optimize", json=body, headers=T1)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_stop_ids_rejected(client):
    stop = ROUTE_BODY["stops"][0]
    body = dict(ROUTE_BODY, stops=[stop, stop])
    response = await client.post("/v1/routes/r1/optimize", json=body, headers=T1)

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_ROUTE_001"


@pytest.mark.asyncio
async def test_route_id_too_long_rejected(client):
    response = await client.post(f"/v1/routes/{'r' * 65}/optimize", json=ROUTE_BODY, headers=T1)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_record_training_sample(client):
    response = await client.post("/v1/predictions/samples", json=SAMPLE, headers=T1)

    assert response.status_code == 201
    assert response.json()["recorded"] is True
    assert response.json()["route_id"] == "r-done"


@pytest.mark.asyncio
async def test_training_sample_validation(client):
    response = await client.post("/v1/predictions/samples", json=dict(SAMPLE, hour_of_day=24), headers=T1)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_train_with_insufficient_data(client):
    await client.post("/v1/predictions/samples", json=SAMPLE, headers=T1)

    response = await client.post("/v1/predictions/train", headers=T1)

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_ML_001"
    model = (await client.get("/v1/predictions/model", headers=T1)).json()
    assert model["ml_enabled"] is False
    assert model["training_samples"] == 1


@pytest.mark.asyncio
async def test_trained_model_serves_optimizations(client, db_session):
    for i in range(120):
        distance = 10.0 + i * 2
        db_session.add(PredictionTrainingSample(
            tenant_id="t1",
            route_id=f"hist-{i}",
            total_distance_km=distance,
            traffic_level=[0.8, 1.0, 1.3, 1.5][i % 4],
            weather_severity=1.0,
            hour_of_day=float(i % 24),
            day_of_week=float(i % 7),
            vehicle_type_flag=float(i % 7),
            driver_experience=1.0,
            stop_count=float(i % 6),
            actual_duration_min=20.0 + 1.1 * distance + 5 * (i % 6),
            actual_fuel_liters=2.0 + 0.25 * distance,
            on_time=i % 3 != 0,
        ))
    await db_session.commit()

    trained = await client.post("/v1/predictions/train", headers=T1)
    assert trained.status_code == 200
    version = trained.json()["model_version"]

    model = (await client.get("/v1/predictions/model", headers=T1)).json()
    assert model["ml_enabled"] is True
    assert model["model_version"] == version

    route = (await client.post("/v1/routes/r-ml/optimize", json=ROUTE_BODY, headers=T1)).json()
    assert route["prediction"]["method"] == "model"
    assert route["prediction"]["model_version"] == version
