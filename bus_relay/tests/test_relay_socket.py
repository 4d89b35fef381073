"""
Relay Socket Tests.

Drives the /v1/ws endpoint with Starlette's TestClient. All sockets of a test
share one client so they run on the same event loop as the hub.
"""

from fastapi.testclient import TestClient

from bus_relay.app.core.jwt import create_access_token
from bus_relay.app.main import app
from bus_relay.app.realtime.hub import RelayHub, get_relay_hub
from bus_relay.app.schemas.events import RelayEvent

REGISTRATION = {"driverId": "D1", "busId": "BUS-001", "routeId": "500A"}


def _sync(ws):
    """Round-trip a bad frame; everything sent before it has been handled."""
    ws.send_json({"event": "ping"})
    frame = ws.receive_json()
    assert frame["event"] == RelayEvent.ERROR


def test_location_reaches_subscribed_viewer(relay_hub):
    with TestClient(app) as client:
        with client.websocket_connect("/v1/ws") as viewer:
            viewer.send_json({"event": RelayEvent.SUBSCRIBE_TO_BUS, "data": "BUS-001"})
            _sync(viewer)

            with client.websocket_connect("/v1/ws") as driver:
                driver.send_json({"event": RelayEvent.DRIVER_REGISTER, "data": REGISTRATION})
                ack = driver.receive_json()
                assert ack == {
                    "event": RelayEvent.DRIVER_REGISTERED,
                    "data": {"success": True, "driverId": "D1", "busId": "BUS-001"}
                }

                status_frame = viewer.receive_json()
                assert status_frame["event"] == RelayEvent.BUS_STATUS_UPDATE
                assert status_frame["data"]["status"] == "active"

                driver.send_json({
                    "event": RelayEvent.LOCATION_UPDATE,
                    "data": {"latitude": 12.9774, "longitude": 77.5708, "accuracy": 10}
                })
                update = viewer.receive_json()
                assert update["event"] == RelayEvent.BUS_LOCATION_UPDATE
                assert update["data"]["busId"] == "BUS-001"
                assert update["data"]["route"] == "500A"
                assert update["data"]["location"]["lat"] == 12.9774
                assert update["data"]["location"]["lng"] == 77.5708
                assert update["data"]["location"]["accuracy"] == 10

            offline = viewer.receive_json()
            assert offline["event"] == RelayEvent.BUS_STATUS_UPDATE
            assert offline["data"]["status"] == "offline"

        assert relay_hub.stats() == {"active_drivers": 0, "connections": 0, "viewers": 0}


def test_invalid_json_gets_error_frame(relay_hub):
    with TestClient(app) as client:
        with client.websocket_connect("/v1/ws") as ws:
            ws.send_text("{not json")
            frame = ws.receive_json()

    assert frame["event"] == RelayEvent.ERROR
    assert frame["data"]["error_code"] == "ERR_RELAY_004"


def test_bad_registration_gets_negative_ack(relay_hub):
    with TestClient(app) as client:
        with client.websocket_connect("/v1/ws") as driver:
            driver.send_json({"event": RelayEvent.DRIVER_REGISTER, "data": {"driverId": "D1"}})
            ack = driver.receive_json()

    assert ack["event"] == RelayEvent.DRIVER_REGISTERED
    assert ack["data"]["success"] is False
    assert len(relay_hub.sessions) == 0


def test_invalid_location_is_rejected_over_socket(relay_hub):
    with TestClient(app) as client:
        with client.websocket_connect("/v1/ws") as driver:
            driver.send_json({"event": RelayEvent.DRIVER_REGISTER, "data": REGISTRATION})
            driver.receive_json()  # driver-registered
            driver.receive_json()  # bus-status-update

            driver.send_json({"event": RelayEvent.LOCATION_UPDATE, "data": {"latitude": "NaN", "longitude": 0}})
            rejection = driver.receive_json()

    assert rejection["event"] == RelayEvent.LOCATION_REJECTED
    assert rejection["data"]["error_code"] == "ERR_RELAY_002"


def test_driver_token_checked_when_required():
    hub = RelayHub(trip_store=None, queue_size=100, reject_inactive_updates=False, require_driver_token=True)
    app.dependency_overrides[get_relay_hub] = lambda: hub
    good = create_access_token({"sub": "D1", "role": "DRIVER"})
    wrong_subject = create_access_token({"sub": "D2", "role": "DRIVER"})
    admin = create_access_token({"sub": "D1", "role": "ADMIN"})

    try:
        with TestClient(app) as client:
            with client.websocket_connect("/v1/ws") as driver:
                for token in (None, "garbage", wrong_subject, admin):
                    driver.send_json({
                        "event": RelayEvent.DRIVER_REGISTER,
                        "data": {**REGISTRATION, "token": token}
                    })
                    ack = driver.receive_json()
                    assert ack["data"]["success"] is False

                assert len(hub.sessions) == 0

                driver.send_json({"event": RelayEvent.DRIVER_REGISTER, "data": {**REGISTRATION, "token": good}})
                ack = driver.receive_json()
                assert ack["data"]["success"] is True
    finally:
        app.dependency_overrides.pop(get_relay_hub, None)


def test_binary_frame_keeps_driver_session(relay_hub):
    with TestClient(app) as client:
        with client.websocket_connect("/v1/ws") as driver:
            driver.send_json({"event": RelayEvent.DRIVER_REGISTER, "data": REGISTRATION})
            driver.receive_json()  # driver-registered
            driver.receive_json()  # bus-status-update

            driver.send_bytes(b"\x00\x01")
            error = driver.receive_json()
            assert error["event"] == RelayEvent.ERROR
            assert error["data"]["error_code"] == "ERR_RELAY_004"

            driver.send_json({"event": RelayEvent.LOCATION_UPDATE, "data": {"latitude": 12.9774, "longitude": 77.5708}})
            _sync(driver)

            bus = relay_hub.get_bus("BUS-001")
            assert bus is not None
            assert bus["lastLocation"]["lat"] == 12.9774
