"""
Locust Load Test Suite

Tokens are minted locally with the same SECRET_KEY as the API, so set
SECRET_KEY in the environment before running.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double booking
  locust -f locustfile.py --tags throughput   # Test catalogue cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import random
from datetime import date, timedelta
from locust import HttpUser, task, between, tag, events

from labbook.core.security import create_access_token

# Shared state
RESOURCE_IDS = []
CONTESTED_RESOURCE_ID = None
CONTESTED_DATE = (date.today() + timedelta(days=7)).isoformat()


def headers_for(subject, role="student"):
    token = create_access_token({"sub": subject, "role": role})
    return {"Authorization": f"Bearer {token}"}


ADMIN_HEADERS = headers_for("load-admin", "admin")
FACULTY_HEADERS = headers_for("load-faculty", "faculty")


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print("SETUP: machines are created by the first user to start")
    print("="*60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 students -> one machine, one morning

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify no two held bookings overlap:
      SELECT a.id, b.id FROM bookings a JOIN bookings b
        ON a.resource_id = b.resource_id AND a.booking_date = b.booking_date
       AND a.id < b.id AND a.start_time < b.end_time AND b.start_time < a.end_time
     WHERE a.status IN ('pending', 'approved') AND b.status IN ('pending', 'approved');
    Should return no rows
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = headers_for(f"load-student-{random.randint(10000, 99999)}")

        if not CONTESTED_RESOURCE_ID:
            resp = self.client.post("/api/v1/resources/",
                json={
                    "name": f"Contested Oscilloscope {random.randint(1, 10000)}",
                    "department": "ECE",
                    "location": "Load Lab",
                },
                headers=ADMIN_HEADERS
            )
            if resp.status_code == 201:
                globals()["CONTESTED_RESOURCE_ID"] = resp.json()["id"]
                print(f"\n✓ Created machine {CONTESTED_RESOURCE_ID}\n")

    @tag("concurrency")
    @task
    def book_contested_slot(self):
        """Everyone asks for an hour between 08:00 and 12:00 on the same day."""
        if not CONTESTED_RESOURCE_ID:
            return

        start = random.randint(8, 11)
        with self.client.post("/api/v1/bookings/",
            json={
                "resource_id": CONTESTED_RESOURCE_ID,
                "booking_date": CONTESTED_DATE,
                "start_time": f"{start:02d}:00",
                "end_time": f"{start + 1:02d}:00",
                "purpose": "Load test measurements",
            },
            headers=self.headers,
            catch_response=True,
            name="/api/v1/bookings/ [contested]"
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: SLOT_CONFLICT or CONFLICT_AT_COMMIT
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Catalogue cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = headers_for(f"load-reader-{random.randint(10000, 99999)}")

    @tag("throughput", "read")
    @task(10)
    def list_resources_cached(self):
        """Hammer the cached endpoint."""
        department = random.choice([None, "ECE", "Mechanical"])
        params = {"department": department} if department else {}
        resp = self.client.get("/api/v1/resources/", params=params,
            headers=self.headers, name="/api/v1/resources/ [cached]")
        if resp.status_code == 200:
            for resource in resp.json().get("resources", []):
                if resource["id"] not in RESOURCE_IDS:
                    RESOURCE_IDS.append(resource["id"])

    @tag("throughput", "read")
    @task(3)
    def get_availability(self):
        """Availability is always read from the database."""
        if RESOURCE_IDS:
            resource_id = random.choice(RESOURCE_IDS)
            self.client.get(f"/api/v1/resources/{resource_id}/availability",
                params={"date": CONTESTED_DATE},
                headers=self.headers,
                name="/api/v1/resources/{id}/availability")

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
        self.headers = headers_for(f"load-edge-{random.randint(10000, 99999)}")

    def _submit(self, payload, expected, headers=None):
        with self.client.post("/api/v1/bookings/",
            json=payload,
            headers=self.headers if headers is None else headers,
            catch_response=True
        ) as resp:
            if resp.status_code in expected:
                resp.success()
            else:
                resp.failure(f"Expected {expected}, got {resp.status_code}")

    def _payload(self, **overrides):
        payload = {
            "resource_id": CONTESTED_RESOURCE_ID or 1,
            "booking_date": CONTESTED_DATE,
            "start_time": "14:00",
            "end_time": "15:00",
            "purpose": "Edge case",
        }
        payload.update(overrides)
        return payload

    @tag("edge")
    @task
    def unknown_resource(self):
        self._submit(self._payload(resource_id=999999), [404])

    @tag("edge")
    @task
    def inverted_window(self):
        self._submit(self._payload(start_time="15:00", end_time="14:00"), [422])

    @tag("edge")
    @task
    def too_long(self):
        self._submit(self._payload(start_time="06:00", end_time="20:00"), [422])

    @tag("edge")
    @task
    def past_date(self):
        self._submit(self._payload(booking_date="2020-01-01"), [422])

    @tag("edge")
    @task
    def blank_purpose(self):
        self._submit(self._payload(purpose="   "), [422])

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/",
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
    def missing_auth(self):
        self._submit(self._payload(), [401], headers={})


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates a department:
      - Mostly browsing the catalogue
      - Some booking requests
      - Faculty working through the approval queue
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = headers_for(f"load-user-{random.randint(10000, 99999)}")

    @task(50)
    def browse_resources(self):
        resp = self.client.get("/api/v1/resources/", headers=self.headers)
        if resp.status_code == 200:
            for resource in resp.json().get("resources", []):
                if resource["id"] not in RESOURCE_IDS:
                    RESOURCE_IDS.append(resource["id"])

    @task(10)
    def request_booking(self):
        if not RESOURCE_IDS:
            return
        day = date.today() + timedelta(days=random.randint(1, 30))
        start = random.randint(8, 17)
        self.client.post("/api/v1/bookings/",
            json={
                "resource_id": random.choice(RESOURCE_IDS),
                "booking_date": day.isoformat(),
                "start_time": f"{start:02d}:00",
                "end_time": f"{start + 1:02d}:00",
                "purpose": "Coursework",
            },
            headers=self.headers)

    @task(5)
    def my_bookings(self):
        self.client.get("/api/v1/bookings/", headers=self.headers)

    @task(3)
    def work_approval_queue(self):
        """Faculty approve the oldest pending request."""
        resp = self.client.get("/api/v1/bookings/pending", headers=FACULTY_HEADERS)
        if resp.status_code == 200 and resp.json():
            booking_id = resp.json()[0]["id"]
            with self.client.post(f"/api/v1/bookings/{booking_id}/approve",
                headers=FACULTY_HEADERS,
                catch_response=True,
                name="/api/v1/bookings/{id}/approve"
            ) as approve:
                if approve.status_code in [200, 409]:
                    approve.success()  # 409: another approver got there first
                else:
                    approve.failure(f"Unexpected: {approve.status_code}")
