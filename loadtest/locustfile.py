import csv
import itertools
import os
import random
import threading
from typing import Optional

from locust import HttpUser, task, between, events

# loadtest/members.csv is written by `manage.py seed_demo_network`
MEMBERS_CSV = os.getenv("CREDENTIALS_CSV") or os.path.join(os.path.dirname(__file__), "members.csv")


def read_members(path: str) -> list[tuple[str, str]]:
    """(username, password) rows from a `username,password` CSV."""
    if not os.path.exists(path):
        fallback = os.getenv("LT_USER")
        return [(fallback, os.getenv("LT_PASS", ""))] if fallback else []
    with open(path, newline="", encoding="utf-8") as fh:
        return [
            (row["username"].strip(), row.get("password") or "")
            for row in csv.DictReader(fh)
            if (row.get("username") or "").strip()
        ]


class Members:
    """Hands out seeded member credentials round-robin across Locust users."""
    _guard = threading.Lock()
    _cycle = None

    @classmethod
    def prime(cls, path: str = MEMBERS_CSV):
        with cls._guard:
            if cls._cycle is None:
                # an unknown member makes every login 401, which shows up in the stats
                cls._cycle = itertools.cycle(read_members(path) or [("no_such_member", "-")])

    @classmethod
    def take(cls) -> tuple[str, str]:
        cls.prime()
        with cls._guard:
            return next(cls._cycle)


class MemberUser(HttpUser):
    """
    Simulates members of one referral network buying plans concurrently, so
    purchases in the same sponsor chain contend for the same wallets.

    Endpoints exercised:
      - POST /api/accounts/login/
      - GET  /api/business/plans/
      - POST /api/business/plans/buy/
      - GET  /api/accounts/dashboard/
      - GET  /api/accounts/genealogy/
      - GET  /api/health/
    """
    wait_time = between(float(os.getenv("LT_WAIT_MIN", "0.2")), float(os.getenv("LT_WAIT_MAX", "1.2")))

    weight_buy = int(os.getenv("LT_WEIGHT_BUY", "5"))
    weight_dashboard = int(os.getenv("LT_WEIGHT_DASHBOARD", "3"))
    weight_tree = int(os.getenv("LT_WEIGHT_TREE", "1"))

    token: Optional[str] = None
    plan_ids: list[int] = []

    def on_start(self):
        self.login()
        listing = self.client.get("/api/business/plans/", headers=self.bearer(), name="plans")
        if listing.ok:
            body = listing.json()
            # plans may come back paginated or as a bare list
            rows = body.get("results", []) if isinstance(body, dict) else body
            self.plan_ids = [p["id"] for p in rows]

    def login(self):
        username, password = Members.take()
        self.token = None
        with self.client.post(
            "/api/accounts/login/",
            json={"username": username, "password": password},
            name="auth_login",
            catch_response=True,
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"login {username} -> {resp.status_code}")
                return
            self.token = resp.json().get("access")
            if not self.token:
                resp.failure("login response carried no access token")

    def bearer(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    @task(weight_buy)
    def t_buy(self):
        if not self.plan_ids:
            return
        with self.client.post(
            "/api/business/plans/buy/",
            json={"plan_id": random.choice(self.plan_ids)},
            headers=self.bearer(),
            name="plan_buy",
            catch_response=True,
        ) as resp:
            if resp.status_code == 401:
                self.login()
            # Running out of funds is an expected business outcome, not a failure
            if resp.status_code == 400 and "insufficient_funds" in resp.text:
                resp.success()
            elif not resp.ok:
                resp.failure(f"status={resp.status_code}")

    @task(weight_dashboard)
    def t_dashboard(self):
        with self.client.get("/api/accounts/dashboard/", headers=self.bearer(), name="dashboard", catch_response=True) as resp:
            if not resp.ok:
                resp.failure(f"status={resp.status_code}")

    @task(weight_tree)
    def t_genealogy(self):
        self.client.get("/api/accounts/genealogy/?max_depth=4", headers=self.bearer(), name="genealogy")

    @task(1)
    def t_health(self):
        self.client.get("/api/health/", name="health")


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    Members.prime()
