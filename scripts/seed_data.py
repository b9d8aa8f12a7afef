#!/usr/bin/env python3
"""
Seed script — creates a realistic dataset for trying out the feed.

Creates:
  • 8 users (registered + logged in)
  • A follow graph (each user follows 3 others)
  • 3 posts per user (24 total), with tags
  • Random likes and comments across posts

Run against a running API:
  python scripts/seed_data.py --api-url http://localhost:8000

Every user's password is the same (see DEFAULT_PASSWORD) so you can log in
as any of them afterwards.
"""
import argparse
import json
import random
import time
import urllib.request
import urllib.error
from dataclasses import dataclass
from typing import Optional

DEFAULT_PASSWORD = "password123"

BASE_USERS = [
    ("ayu", "Ayu Lestari"),
    ("budi", "Budi Santoso"),
    ("citra", "Citra Dewi"),
    ("dimas", "Dimas Pratama"),
    ("eka", "Eka Putri"),
    ("fajar", "Fajar Nugroho"),
    ("gita", "Gita Maharani"),
    ("hadi", "Hadi Wijaya"),
]

SAMPLE_POSTS = [
    ("Sunrise hike this morning, totally worth the 4am alarm.", ["outdoors", "hiking"]),
    ("Finally tried the new ramen place downtown. 10/10 broth.", ["food"]),
    ("Rainy Sunday = coffee + a good book.", ["coffee", "books"]),
    ("Shipped my first open-source PR today!", ["code"]),
    ("Street market haul: mangosteen, rambutan and way too many snacks.", ["food", "market"]),
    ("Golden hour at the beach never gets old.", ["beach", "photography"]),
    ("Weekend project: repotted every plant in the apartment.", ["plants"]),
    ("Concert last night was unreal. Ears still ringing.", ["music"]),
    ("Trying to learn watercolor. Results: mixed.", ["art"]),
    ("Road trip playlist suggestions? Need 6 hours of music.", ["music", "travel"]),
    ("Homemade sambal, round two. Spicier this time.", ["food", "cooking"]),
    ("First 10k done. Slow, but done.", ["running"]),
]

SAMPLE_COMMENTS = [
    "Love this!",
    "Where is this?",
    "So jealous right now",
    "Need the recipe",
    "Congrats!!",
    "Looks amazing",
]


@dataclass
class ApiClient:
    base_url: str
    token: Optional[str] = None

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def post(self, path: str, data: dict) -> dict:
        url = f"{self.base_url}{path}"
        body = json.dumps(data).encode()
        req = urllib.request.Request(url, data=body, headers=self._headers(), method="POST")
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            body = e.read().decode()
            print(f"  HTTP {e.code} on POST {path}: {body}")
            return {}

    def get(self, path: str):
        url = f"{self.base_url}{path}"
        req = urllib.request.Request(url, headers=self._headers(), method="GET")
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on GET {path}")
            return {}

    def as_user(self, token: str) -> "ApiClient":
        return ApiClient(self.base_url, token)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for i in range(retries):
        try:
            result = client.get("/health")
            if result.get("status") == "ok":
                print("  API is ready!\n")
                return
        except urllib.error.URLError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Register + log in ─────────────────────────────────────────────────
    print("Creating users...")
    sessions: dict[str, ApiClient] = {}
    user_ids: dict[str, str] = {}
    for username, name in BASE_USERS:
        email = f"{username}@example.com"
        client.post(
            "/users/register",
            {"name": name, "username": username, "email": email, "password": DEFAULT_PASSWORD},
        )
        login = client.post("/users/login", {"email": email, "password": DEFAULT_PASSWORD})
        if login.get("token"):
            sessions[username] = client.as_user(login["token"])
            user_ids[username] = login["user_id"]
            print(f"  ✓ {username} ({login['user_id']})")
        else:
            print(f"  ✗ Could not log in as {username}")

    if not sessions:
        print("No users available — aborting")
        return

    # ── Create follow graph ───────────────────────────────────────────────
    print("\nCreating follow relationships...")
    follows = 0
    for username, session in sessions.items():
        others = [u for u in user_ids if u != username]
        for followee in random.sample(others, k=min(3, len(others))):
            if session.post("/users/follow", {"following_id": user_ids[followee]}):
                follows += 1
    print(f"  ✓ {follows} follows created")

    # ── Create posts ──────────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids: list[str] = []
    pool = SAMPLE_POSTS * 2
    random.shuffle(pool)
    idx = 0
    for username, session in sessions.items():
        for _ in range(3):
            content, tags = pool[idx % len(pool)]
            idx += 1
            img_url = f"https://picsum.photos/seed/{username}{idx}/600/600"
            result = session.post("/posts/", {"content": content, "img_url": img_url, "tags": tags})
            if result.get("post_id"):
                post_ids.append(result["post_id"])
    print(f"  ✓ {len(post_ids)} posts created")

    # ── Likes and comments ────────────────────────────────────────────────
    print("\nAdding likes and comments...")
    likes = comments = 0
    usernames = list(sessions)
    for post_id in post_ids:
        for username in random.sample(usernames, k=random.randint(0, 4)):
            if sessions[username].post(f"/posts/{post_id}/like", {}):
                likes += 1
        for username in random.sample(usernames, k=random.randint(0, 2)):
            comment = {"content": random.choice(SAMPLE_COMMENTS)}
            if sessions[username].post(f"/posts/{post_id}/comments", comment):
                comments += 1
    print(f"  ✓ {likes} likes, {comments} comments added")

    # ── Print summary ─────────────────────────────────────────────────────
    first = next(iter(sessions.values()))
    feed = first.get("/feed/")
    print("\n" + "=" * 60)
    print(f"Seed complete! Feed currently holds {len(feed)} posts.\n")
    print("# Log in and read the feed:")
    print(f"  TOKEN=$(curl -s -X POST '{api_url}/users/login' \\")
    print(f"    -H 'Content-Type: application/json' \\")
    print(f"    -d '{{\"email\": \"{BASE_USERS[0][0]}@example.com\", \"password\": \"{DEFAULT_PASSWORD}\"}}' \\")
    print("    | python3 -c 'import sys, json; print(json.load(sys.stdin)[\"token\"])')")
    print(f"  curl -s '{api_url}/feed/' -H \"Authorization: Bearer $TOKEN\" | python3 -m json.tool\n")
    print(f"# Feed cache metrics: {api_url}/metrics (feed_cache_lookups_total)")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Post Feed API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
