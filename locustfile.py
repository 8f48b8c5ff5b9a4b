"""
Load Test for Blogsite public read paths.

Simulates readers browsing the listing, opening posts and crawlers
fetching the sitemap.
"""

import os
import random

from locust import HttpUser, between, events, task
from locust.runners import MasterRunner


# ============== Configuration ==============

READER_USERS = 500  # Number of concurrent readers
SPAWN_RATE = 25  # Users per second to spawn
ADMIN_KEY = os.environ.get("ADMIN_SECRET", "")

# Slugs discovered from the listing
_cached_slugs = []


# ============== Test Data Helpers ==============

def get_random_slug():
    """Get a random slug from cache."""
    if _cached_slugs:
        return random.choice(_cached_slugs)
    return "hello-world"


def remember_slugs(blogs):
    """Cache slugs from a listing response."""
    for blog in blogs:
        slug = blog.get("slug")
        if slug and slug not in _cached_slugs:
            _cached_slugs.append(slug)


# ============== Reader Load Test User ==============

class ReaderUser(HttpUser):
    """
    Simulates a reader on the public site.

    Behaviors:
    - Fetch the listing JSON
    - Open a post page
    - Search the listing
    """

    wait_time = between(1, 5)

    def on_start(self):
        """Prime the slug cache."""
        response = self.client.get("/api/blogs", name="GET /api/blogs")
        if response.status_code == 200:
            remember_slugs(response.json().get("blogs", []))

    @task(10)
    def view_post(self):
        """
        Open a rendered post page.
        Weight: 10 (most common action)
        """
        with self.client.get(
            f"/post/{get_random_slug()}",
            name="GET /post/{slug}",
            catch_response=True,
        ) as response:
            if response.status_code in [200, 404]:
                response.success()
            else:
                response.failure(f"Unexpected status: {response.status_code}")

    @task(5)
    def list_blogs(self):
        """
        Fetch the listing used by the client page.
        Weight: 5
        """
        with self.client.get(
            "/api/frontend/blogs",
            name="GET /api/frontend/blogs",
            catch_response=True,
        ) as response:
            if response.status_code == 200:
                remember_slugs(response.json())
                response.success()
            else:
                response.failure(f"Unexpected status: {response.status_code}")

    @task(3)
    def view_index(self):
        """Server-rendered listing. Weight: 3"""
        with self.client.get("/", name="GET /", catch_response=True) as response:
            if response.status_code == 200:
                response.success()
            else:
                response.failure(f"Unexpected status: {response.status_code}")

    @task(1)
    def search(self):
        """Search the listing. Weight: 1"""
        query = random.choice(["python", "guide", "urdu", "news"])
        with self.client.get(
            f"/?q={query}",
            name="GET /?q=",
            catch_response=True,
        ) as response:
            if response.status_code == 200:
                response.success()
            else:
                response.failure(f"Unexpected status: {response.status_code}")


# ============== Crawler User ==============

class CrawlerUser(HttpUser):
    """
    Simulates search engine crawlers and uptime checks.
    """

    wait_time = between(10, 30)

    @task(3)
    def sitemap(self):
        with self.client.get(
            "/sitemap.xml",
            name="GET /sitemap.xml",
            catch_response=True,
        ) as response:
            if response.status_code == 200 and b"<urlset" in response.content:
                response.success()
            else:
                response.failure(f"Sitemap failed: {response.status_code}")

    @task(1)
    def health_check(self):
        """Perform health check."""
        with self.client.get(
            "/health",
            name="GET /health",
            catch_response=True,
        ) as response:
            if response.status_code == 200:
                response.success()
            else:
                response.failure(f"Health check failed: {response.status_code}")


# ============== Admin Burst User ==============

class AdminBurstUser(HttpUser):
    """
    Simulates bursts of admin writes.
    Useful for checking the write rate limit.
    """

    wait_time = between(0.1, 0.5)
    weight = 1

    @task
    def rapid_creates(self):
        with self.client.post(
            "/api/blogs",
            json={"title": "Load Test Post", "content": "<p>load</p>"},
            headers={"X-Admin-Key": ADMIN_KEY},
            name="Burst: POST /api/blogs",
            catch_response=True,
        ) as response:
            # 403 without a configured key, 429 once the limit is hit
            if response.status_code in [201, 403, 429]:
                response.success()
            else:
                response.failure(f"Unexpected status: {response.status_code}")


# ============== Load Test Events ==============

@events.init.add_listener
def on_locust_init(environment, **kwargs):
    """Called when Locust is initialized."""
    if isinstance(environment.runner, MasterRunner):
        print("Master node initialized for distributed load testing")


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Called when test starts."""
    print(f"Starting load test with {READER_USERS} users")
    print(f"Spawn rate: {SPAWN_RATE} users/second")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Called when test stops."""
    if environment.stats.total:
        print("\n=== Load Test Summary ===")
        print(f"Total requests: {environment.stats.total.num_requests}")
        print(f"Total failures: {environment.stats.total.num_failures}")
        print(f"Avg response time: {environment.stats.total.avg_response_time:.2f}ms")
        print(f"Requests per second: {environment.stats.total.total_rps:.2f}")


# For single-node testing:
# locust -f locustfile.py -u 500 -r 25 --host http://localhost:5000
