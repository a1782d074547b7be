"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Many users, one small event
  locust -f locustfile.py --tags throughput   # Listing cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Tokens are signed locally with SECRET_KEY, so the target must share the
same secret (the defaults match).
"""

import random
import uuid
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

from event_reservations.core.security import create_access_token

# Shared state
EVENT_IDS = []
CONTENTION_EVENT_ID = None
CONTENTION_CAPACITY = 10


def bearer_headers(role="customer"):
    token = create_access_token(data={"sub": str(uuid.uuid4()), "role": role})
    return {"Authorization": f"Bearer {token}"}


def future_date(days):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: contention event has {CONTENTION_CAPACITY} spots")
    print("=" * 60)


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - 100 users -> 10 spots

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT SUM(attendees) FROM bookings WHERE event_id = X AND status <> 'cancelled';
    Should be <= 10, and events.available_spots should equal 10 minus that sum.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        # Fresh identity per simulated user: one active booking each
        self.headers = bearer_headers()

        if not CONTENTION_EVENT_ID:
            resp = self.client.post(
                "/api/v1/events/",
                json={
                    "slug": f"contention-{uuid.uuid4().hex[:8]}",
                    "title": "Contention Test Event",
                    "event_date": future_date(30),
                    "price": "10.00",
                    "capacity": CONTENTION_CAPACITY,
                },
                headers=self.headers,
            )
            if resp.status_code == 201:
                globals()["CONTENTION_EVENT_ID"] = resp.json()["id"]
                print(f"\nCreated event {CONTENTION_EVENT_ID} with {CONTENTION_CAPACITY} spots\n")

    @tag("contention")
    @task
    def reserve_limited_spots(self):
        """All users fight for the same spots."""
        if not CONTENTION_EVENT_ID:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": CONTENTION_EVENT_ID, "attendees": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: sold out or already booked
            elif resp.status_code == 503:
                resp.success()  # Lock wait exceeded; client would retry
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the server, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/v1/events/?page={page}&page_size=20", name="/api/v1/events/ [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def check_capacity(self):
        if EVENT_IDS:
            event_id = random.choice(EVENT_IDS)
            self.client.get(f"/api/v1/events/{event_id}/capacity?spots=2", name="/api/v1/events/{id}/capacity")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = bearer_headers()

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": str(uuid.uuid4()), "attendees": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def zero_attendees(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": str(uuid.uuid4()), "attendees": 0},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def too_many_attendees(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": str(uuid.uuid4()), "attendees": 999},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": str(uuid.uuid4()), "attendees": 1},
            catch_response=True,
        ) as resp:
            self._expect(resp, [401])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

      - Mostly browsing
      - Some reservations, a few of them cancelled again
      - Rare event creation
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = bearer_headers()
        self.booking_ids = []

    @task(50)
    def browse_events(self):
        resp = self.client.get("/api/v1/events/?page=1&page_size=20")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @task(20)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @task(10)
    def reserve(self):
        if not EVENT_IDS:
            return
        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": random.choice(EVENT_IDS), "attendees": random.randint(1, 3)},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                self.booking_ids.append(resp.json()["booking_id"])
                resp.success()
            elif resp.status_code in (409, 503):
                resp.success()

    @task(3)
    def cancel(self):
        if self.booking_ids:
            booking_id = self.booking_ids.pop()
            self.client.delete(f"/api/v1/bookings/{booking_id}", headers=self.headers, name="/api/v1/bookings/{id}")

    @task(2)
    def create_event(self):
        resp = self.client.post(
            "/api/v1/events/",
            json={
                "slug": f"event-{uuid.uuid4().hex[:10]}",
                "title": f"Event {random.randint(1, 10000)}",
                "event_date": future_date(random.randint(1, 90)),
                "price": "15.00",
                "capacity": random.randint(10, 500),
            },
            headers=self.headers,
        )
        if resp.status_code == 201:
            EVENT_IDS.append(resp.json()["id"])
