"""
Locust Load Test Suite

Run scenarios:
  locust -f locust/locustfile.py --tags concurrency  # Last-seat race and waitlist churn
  locust -f locust/locustfile.py --tags throughput   # Test cache
  locust -f locust/locustfile.py                     # All tests

Tokens are signed locally with SECRET_KEY, the way the identity provider
would sign them; the API provisions a user on first sight of each subject.
"""

import os
import uuid
from datetime import datetime, timezone, timedelta

import jwt
from locust import HttpUser, task, between, tag, events

SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key-change-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
SEATS = 10

# Shared state
CONCURRENCY_EVENT_ID = None


def make_headers() -> dict:
    subject = f"load-{uuid.uuid4().hex[:12]}"
    token = jwt.encode(
        {
            "sub": subject,
            "email": f"{subject}@load.test",
            "exp": datetime.now(timezone.utc) + timedelta(hours=2),
        },
        SECRET_KEY,
        algorithm=ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print(f"\nSETUP: first user creates a {SEATS}-seat event\n")


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 seats, losers queue on the waitlist

    Run: locust -f locust/locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings WHERE event_id = X AND status = 'confirmed';
    Should be <= 10, and waitlist positions for X should be exactly 1..N.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = make_headers()
        self.booking_id = None

        if not CONCURRENCY_EVENT_ID:
            start = datetime.now(timezone.utc) + timedelta(days=30)
            resp = self.client.post(
                "/api/v1/events/",
                json={
                    "title": "Concurrency Test Event",
                    "description": f"{SEATS} seats only",
                    "start_date": start.isoformat(),
                    "end_date": (start + timedelta(hours=2)).isoformat(),
                    "location": "Test",
                    "capacity": SEATS,
                    "price": "25.00",
                },
                headers=self.headers,
            )
            if resp.status_code == 201:
                globals()["CONCURRENCY_EVENT_ID"] = resp.json()["id"]
                print(f"\nCreated event {CONCURRENCY_EVENT_ID} with {SEATS} seats\n")

    @tag("concurrency")
    @task(3)
    def book_or_queue(self):
        """Everyone fights for the same seats; a full event sends them to the waitlist."""
        if not CONCURRENCY_EVENT_ID or self.booking_id:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": CONCURRENCY_EVENT_ID},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                self.booking_id = resp.json()["id"]
                resp.success()
            elif resp.status_code in (400, 409):
                resp.success()  # Expected: sold out or already booked
                self.join_waitlist()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    def join_waitlist(self):
        with self.client.post(
            f"/api/v1/events/{CONCURRENCY_EVENT_ID}/waitlist",
            headers=self.headers,
            name="/api/v1/events/[id]/waitlist",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 400, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task(1)
    def cancel(self):
        """Free a seat so the head of the waitlist gets promoted."""
        if not self.booking_id:
            return

        with self.client.delete(
            f"/api/v1/bookings/{self.booking_id}",
            headers=self.headers,
            name="/api/v1/bookings/[id]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 400):
                self.booking_id = None
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locust/locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again

    Compare avg response time, requests/sec and P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput")
    @task(5)
    def list_events(self):
        self.client.get("/api/v1/events/?page=1&page_size=20", name="/api/v1/events/")

    @tag("throughput")
    @task(1)
    def get_event(self):
        if CONCURRENCY_EVENT_ID:
            self.client.get(f"/api/v1/events/{CONCURRENCY_EVENT_ID}", name="/api/v1/events/[id]")
