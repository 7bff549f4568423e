#!/usr/bin/env python3
"""Send a sample call-center webhook to a running service.

Usage:
    python scripts/send_test_webhook.py \
        --payload scripts/test-webhook.json \
        --url http://localhost:3000/webhook

Exit code 0 on a 2xx response, 1 otherwise.
"""

import argparse
import json
import sys
from pathlib import Path

import httpx

TIMEOUT = 30.0
DEFAULT_URL = "http://localhost:3000/webhook"
DEFAULT_PAYLOAD = Path(__file__).with_name("test-webhook.json")


def main() -> int:
    parser = argparse.ArgumentParser(description="Send a test webhook payload")
    parser.add_argument("--payload", type=Path, default=DEFAULT_PAYLOAD, help="JSON payload file")
    parser.add_argument("--url", default=DEFAULT_URL, help="Webhook endpoint URL")
    args = parser.parse_args()

    payload = json.loads(args.payload.read_text(encoding="utf-8"))

    print(f"Sending test request to {args.url}...")
    print("Payload:", json.dumps(payload, indent=2, ensure_ascii=False))

    try:
        response = httpx.post(args.url, json=payload, timeout=TIMEOUT)
    except httpx.ConnectError:
        print(f"\nCould not connect to {args.url}. Is the service running?")
        print("Start it with: uvicorn src.callsync.main:app --port 3000")
        return 1
    except httpx.HTTPError as exc:
        print(f"\nRequest failed: {exc}")
        return 1

    try:
        body = response.json()
    except ValueError:
        body = response.text

    if response.is_success:
        print("\nSuccess! Server response:")
    else:
        print("\nError response:")
    print(json.dumps(body, indent=2, ensure_ascii=False))
    print("\nStatus:", response.status_code)

    return 0 if response.is_success else 1


if __name__ == "__main__":
    sys.exit(main())
