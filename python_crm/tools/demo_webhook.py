"""
Send a sample lead form submission to a running webhook endpoint.

Usage:
    python tools/demo_webhook.py --url http://localhost:8000 --token "$WEBHOOK_SHARED_SECRET"
    python tools/demo_webhook.py --email jane@example.com --repeat 2   # second post is deduplicated
"""
import argparse
import json
import logging
import os
import uuid
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhooks/lead-form/"


def _format_response(response: httpx.Response) -> str:
    """Return a readable response string (pretty JSON if possible)."""
    try:
        data = response.json()
        return json.dumps(data, indent=2, ensure_ascii=False)
    except ValueError:
        return response.text


def build_submission(email: str, name: str, idempotency_key: Optional[str] = None) -> dict:
    return {
        "name": name,
        "email": email,
        "company": "Example Corp",
        "message": "Sent from the demo script.",
        "utm_source": "demo",
        "utm_medium": "cli",
        "idempotency_key": idempotency_key or f"demo-{uuid.uuid4()}",
    }


def send_submission(
    base_url: str,
    token: str,
    payload: dict,
    token_header: str = "X-Webhook-Token",
) -> httpx.Response:
    """
    POST one submission to the lead form webhook.

    Raises:
        httpx.HTTPError: On network/timeout errors
    """
    url = base_url.rstrip("/") + WEBHOOK_PATH
    logger.info(f"Posting submission {payload.get('idempotency_key')} to {url}")
    try:
        response = httpx.post(
            url,
            json=payload,
            headers={token_header: token},
            timeout=10.0,
        )
    except httpx.HTTPError as e:
        logger.error(f"Error posting to webhook: {e}")
        raise

    logger.info("Webhook response %s:\n%s", response.status_code, _format_response(response))
    return response


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send a demo lead form submission.")
    parser.add_argument("--url", default=os.getenv("DEMO_WEBHOOK_URL", "http://localhost:8000"))
    parser.add_argument("--token", default=os.getenv("WEBHOOK_SHARED_SECRET", ""))
    parser.add_argument("--header", default=os.getenv("WEBHOOK_TOKEN_HEADER", "X-Webhook-Token"))
    parser.add_argument("--email", default="jane.demo@example.com")
    parser.add_argument("--name", default="Jane Demo")
    parser.add_argument("--key", default=None, help="Idempotency key (random by default)")
    parser.add_argument("--repeat", type=int, default=1, help="Send the same submission N times")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    payload = build_submission(args.email, args.name, args.key)
    receipts = set()
    for _ in range(max(args.repeat, 1)):
        response = send_submission(args.url, args.token, payload, token_header=args.header)
        if response.status_code != 202:
            return 1
        receipts.add(response.json().get("receipt_id"))

    logger.info(f"Receipts: {sorted(receipts)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
