"""
Relay Smoke Test.

Runs the application in-process against a throwaway SQLite database and
plays one driver along a short stretch of route 500A:
1. Health Check
2. Driver registers and starts a trip, a viewer subscribes
3. Location updates reach the viewer and the live bus snapshot
4. Trip ends and the stored history is readable

Usage:
    python -m scripts.smoke_test [--updates N]
"""

import argparse
import os
import random
import sys

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./smoke_test.db")
os.environ.setdefault("PRUNER_ENABLED", "false")

from fastapi.testclient import TestClient

from bus_relay.app.main import app
from bus_relay.app.schemas.events import RelayEvent

BUS_NUMBER = "BUS-001"
ROUTE_ID = "500A"
DRIVER_ID = "SMOKE-DRIVER"

# Majestic, heading towards Electronic City
START_LAT = 12.94285703
START_LNG = 77.57376564


def print_step(step, msg):
    print(f"[{step}] {msg}")


def fail(msg):
    print(f"FAILURE: {msg}")
    sys.exit(1)


def success(msg):
    print(f"OK: {msg}")


def expect(ws, event):
    frame = ws.receive_json()
    if frame["event"] != event:
        fail(f"Expected {event}, got {frame}")
    return frame["data"]


def run(updates: int):
    with TestClient(app) as client:
        print_step(1, "Health check")
        health = client.get("/health")
        if health.status_code != 200:
            fail(f"/health returned {health.status_code}")
        success(f"Service healthy: {health.json()['relay']}")

        with client.websocket_connect("/v1/ws") as viewer, client.websocket_connect("/v1/ws") as driver:
            print_step(2, "Driver registration and trip start")
            viewer.send_json({"event": RelayEvent.SUBSCRIBE_TO_BUS, "data": BUS_NUMBER})
            driver.send_json({
                "event": RelayEvent.DRIVER_REGISTER,
                "data": {"driverId": DRIVER_ID, "busId": BUS_NUMBER, "routeId": ROUTE_ID}
            })
            ack = expect(driver, RelayEvent.DRIVER_REGISTERED)
            if not ack["success"]:
                fail(f"Registration refused: {ack}")
            expect(driver, RelayEvent.BUS_STATUS_UPDATE)
            expect(viewer, RelayEvent.BUS_STATUS_UPDATE)

            driver.send_json({"event": RelayEvent.START_TRIP})
            expect(driver, RelayEvent.TRIP_STARTED)
            expect(viewer, RelayEvent.TRIP_STARTED)
            success("Trip started")

            print_step(3, f"Sending {updates} location updates")
            lat, lng = START_LAT, START_LNG
            for _ in range(updates):
                lat += (random.random() - 0.3) * 0.0005
                lng += (random.random() - 0.2) * 0.0005
                driver.send_json({
                    "event": RelayEvent.LOCATION_UPDATE,
                    "data": {"latitude": lat, "longitude": lng, "accuracy": random.random() * 10 + 5}
                })
                update = expect(viewer, RelayEvent.BUS_LOCATION_UPDATE)
                print(f"    {update['location']['lat']:.6f}, {update['location']['lng']:.6f}")

            bus = client.get(f"/v1/bus/{BUS_NUMBER}").json()
            if not bus["isActive"] or bus["lastLocation"]["lat"] != lat:
                fail(f"Live snapshot out of date: {bus}")
            success("Viewer and live snapshot saw every update")

            print_step(4, "Trip end and stored history")
            trip_id = bus["tripId"]
            driver.send_json({"event": RelayEvent.END_TRIP})
            expect(driver, RelayEvent.TRIP_ENDED)

        if trip_id is None:
            fail("No trip was recorded")
        history = client.get(f"/v1/trips/{trip_id}/locations", params={"limit": updates})
        if history.status_code != 200:
            fail(f"History returned {history.status_code}")
        body = history.json()
        if body["trip"]["status"] != "ended" or body["total_locations"] != updates:
            fail(f"Unexpected history: {body['trip']} with {body['total_locations']} samples")
        success(f"Trip {trip_id} stored with {updates} samples")


def main():
    parser = argparse.ArgumentParser(description="In-process smoke test of the bus location relay")
    parser.add_argument("--updates", type=int, default=10)
    args = parser.parse_args()
    run(args.updates)
    print("Smoke test passed")


if __name__ == "__main__":
    main()
