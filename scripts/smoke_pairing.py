#!/usr/bin/env python3
"""
Pairing smoke test - No Mocking
Runs the create/join/status/leave flow against a running pairing service.

Usage:
    1. Start Redis and the service: doodle-pairing
    2. Run test: python scripts/smoke_pairing.py [base_url]

Tokens are minted with JWT_SECRET from the environment/.env, so the service
must be running in shared-secret mode.
"""

import sys
import time
from uuid import uuid4

import jwt
import requests

from pairing.config import settings


def log(message: str, color: str = ""):
    """Print colored log message."""
    colors = {
        "green": "\033[92m",
        "yellow": "\033[93m",
        "red": "\033[91m",
        "cyan": "\033[96m",
        "bold": "\033[1m",
    }
    end = "\033[0m"
    prefix = colors.get(color, "")
    print(f"{prefix}{message}{end}")


def bearer(name: str) -> dict:
    """Authorization header for a throwaway user."""
    now = int(time.time())
    token = jwt.encode(
        {"sub": f"smoke-{uuid4().hex[:8]}", "name": name, "iat": now, "exp": now + 600},
        settings.jwt_secret,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


def check(condition: bool, message: str):
    if not condition:
        raise AssertionError(message)
    log(f"  ✓ {message}", "green")


def main():
    """Run pairing smoke test."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else f"http://localhost:{settings.pairing_port}"
    user_a = bearer("Smoke A")
    user_b = bearer("Smoke B")

    log("\n" + "=" * 80, "cyan")
    log("PAIRING SMOKE TEST - NO MOCKING", "bold")
    log("=" * 80 + "\n", "cyan")

    # Wait for service.
    log("[Setup] Waiting for service...", "cyan")
    for _ in range(30):
        try:
            resp = requests.get(f"{base_url}/room/health", timeout=2)
            if resp.status_code == 200 and resp.json()["store"]:
                log("  ✓ Pairing service ready", "green")
                break
        except requests.RequestException:
            pass
        time.sleep(1)
    else:
        log("  ✗ Pairing service not responding. Is it running?", "red")
        sys.exit(1)

    # Step 1: User A creates room.
    log("\n[Step 1] User A creates room", "cyan")
    resp = requests.post(f"{base_url}/room/create", headers=user_a)
    resp.raise_for_status()
    code = resp.json()["code"]
    log(f"  Room code: {code}", "yellow")

    # Step 2: User A polls.
    log("\n[Step 2] User A polls status", "cyan")
    status = requests.get(f"{base_url}/room/status", headers=user_a).json()
    check(status == {"status": "WAITING", "code": code}, "User A is waiting")

    # Step 3: User B joins with lowercase code.
    log("\n[Step 3] User B joins", "cyan")
    resp = requests.post(f"{base_url}/room/join", headers=user_b, json={"code": code.lower()})
    resp.raise_for_status()
    check(resp.json()["partner_name"] == "Smoke A", "User B paired with Smoke A")

    # Step 4: User A polls again.
    log("\n[Step 4] User A polls status", "cyan")
    status = requests.get(f"{base_url}/room/status", headers=user_a).json()
    check(status["status"] == "PAIRED" and status["partner_name"] == "Smoke B", "User A paired with Smoke B")

    # Step 5: User A leaves, B observes NO_ROOM.
    log("\n[Step 5] User A leaves", "cyan")
    requests.post(f"{base_url}/room/leave", headers=user_a).raise_for_status()
    status = requests.get(f"{base_url}/room/status", headers=user_b).json()
    check(status == {"status": "NO_ROOM"}, "User B is back to NO_ROOM")

    log("\n" + "=" * 80, "green")
    log("✅ SMOKE TEST PASSED", "bold")
    log("=" * 80 + "\n", "green")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        log("\n\n⚠️  Test interrupted by user\n", "yellow")
        sys.exit(1)
    except Exception as e:
        log(f"\n\n❌ Test failed: {e}\n", "red")
        import traceback
        traceback.print_exc()
        sys.exit(1)
