"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overfilling
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import random
import uuid
from locust import HttpUser, task, between, tag, events
from datetime import datetime, timezone, timedelta

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None
CONCURRENCY_CAPACITY = 10


def new_identity():
    return {"X-User-ID": f"load-{uuid.uuid4().hex[:12]}"}


def future_date(days=30):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print("SETUP: Creating concurrency test event on first user start...")
    print("="*60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users → 10 spots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT cardinality(members) FROM memberships WHERE event_id = 'X';
    Should be ≤ 10
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = new_identity()

        if not CONCURRENCY_EVENT_ID:
            resp = self.client.post("/api/v1/events/",
                json={
                    "title": "Concurrency Test Event",
                    "description": f"{CONCURRENCY_CAPACITY} spots only",
                    "date": future_date(),
                    "location": "Test",
                    "capacity": CONCURRENCY_CAPACITY
                },
                headers=self.headers
            )
            if resp.status_code == 201:
                globals()["CONCURRENCY_EVENT_ID"] = resp.json()["id"]
                print(f"\n✓ Created event {CONCURRENCY_EVENT_ID} with {CONCURRENCY_CAPACITY} spots\n")

    @tag("concurrency")
    @task(5)
    def join_limited_event(self):
        """All users fight for the same 10 spots."""
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.post(f"/api/v1/events/{CONCURRENCY_EVENT_ID}/rsvp",
            json={"action": "join"},
            headers=self.headers,
            name="/api/v1/events/{id}/rsvp [join]",
            catch_response=True
        ) as resp:
            if resp.status_code in (200, 409):
                resp.success()  # 409: full or already in
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task(1)
    def leave_limited_event(self):
        """Churn: free a spot now and then."""
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.post(f"/api/v1/events/{CONCURRENCY_EVENT_ID}/rsvp",
            json={"action": "leave"},
            headers=self.headers,
            name="/api/v1/events/{id}/rsvp [leave]",
            catch_response=True
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        self.client.get(f"/api/v1/events/?page={page}&page_size=20",
            name="/api/v1/events/ [cached]")

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}",
                name="/api/v1/events/{id}")

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
        self.headers = new_identity()

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post("/api/v1/events/does-not-exist/rsvp",
            json={"action": "join"},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def leave_unknown_event(self):
        with self.client.post("/api/v1/events/does-not-exist/rsvp",
            json={"action": "leave"},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            else:
                resp.failure(f"Expected 200, got {resp.status_code}")

    @tag("edge")
    @task
    def bad_action(self):
        with self.client.post("/api/v1/events/does-not-exist/rsvp",
            json={"action": "maybe"},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")

    @tag("edge")
    @task
    def zero_capacity(self):
        with self.client.post("/api/v1/events/",
            json={"title": "Nope", "date": future_date(), "capacity": 0},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/events/does-not-exist/rsvp",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_identity(self):
        with self.client.post("/api/v1/events/does-not-exist/rsvp",
            json={"action": "join"},
            catch_response=True
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = new_identity()

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
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}",
                name="/api/v1/events/{id}")

    @task(10)
    def rsvp(self):
        if EVENT_IDS:
            self.client.post(f"/api/v1/events/{random.choice(EVENT_IDS)}/rsvp",
                json={"action": random.choice(["join", "join", "leave"])},
                headers=self.headers,
                name="/api/v1/events/{id}/rsvp")

    @task(3)
    def create_event(self):
        resp = self.client.post("/api/v1/events/",
            json={
                "title": f"Event {random.randint(1, 10000)}",
                "description": "Test event",
                "date": future_date(random.randint(1, 90)),
                "location": "Venue",
                "capacity": random.randint(10, 500)
            },
            headers=self.headers)
        if resp.status_code == 201:
            EVENT_IDS.append(resp.json()["id"])
