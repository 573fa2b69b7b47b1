import sys
import time

import requests

from orderfeed.config import load_simulator_config
from orderfeed.timetoken import generate_token

cfg = load_simulator_config()
BASE_URL = cfg.api_url.rsplit("/", 1)[0]
ORDER = {"id": "verify-1", "item": "Smoke Test", "amount": 1}


def check(description, method, url, expected_status, **kwargs):
    print(f"Testing {description} ({method} {url})... ", end="")
    try:
        resp = requests.request(method, url, timeout=5, **kwargs)
    except Exception as e:
        print(f"❌ ERROR: {e}")
        return False
    if resp.status_code == expected_status:
        print(f"✅ OK ({resp.status_code})")
        return True
    print(f"❌ FAILED. Expected {expected_status}, got {resp.status_code}: {resp.text}")
    return False


def main():
    print(f"Verifying order service at {BASE_URL}...\n")
    token = generate_token(cfg.time_token_secret, cfg.time_window, time.time())

    results = [
        check("Health Check", "GET", f"{BASE_URL}/health", 200),
        check("Update without token", "POST", cfg.api_url, 401, json=ORDER),
        check("Update with bad token", "POST", cfg.api_url, 401, json=ORDER,
              headers={"X-API-Token": "bm90LWEtdG9rZW4"}),
        check("Update with time token", "POST", cfg.api_url, 202, json=ORDER,
              headers={"X-API-Token": token}),
        check("Public publish", "POST", cfg.publish_url, 202, json=ORDER,
              headers={"X-API-Token": token}),
    ]

    if all(results):
        print("\n✅ All checks passed! Order service is accepting signed requests.")
        sys.exit(0)
    else:
        print("\n❌ One or more checks failed.")
        sys.exit(1)


if __name__ == "__main__":
    main()
