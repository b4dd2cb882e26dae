#!/usr/bin/env python3
"""
Sign a Lipana webhook body and optionally deliver it to a Shopki server.

Useful to replay a webhook that was missed, or to exercise the webhook
endpoint against a local server.  The signature is the hex HMAC-SHA256 of
the exact file bytes, so the file is sent as-is and never re-serialised.

Usage:
    python sign_webhook.py --body ./webhook.json --secret "whsec_..."
    python sign_webhook.py --body ./webhook.json --url http://localhost:5000

If --secret is omitted, LIPANA_WEBHOOK_SECRET (or WEBHOOK_SECRET) is used.
"""

import argparse
import json
import os
import sys

import requests

from shopki_api.app.core.security import compute_signature


def build_parser():
    ap = argparse.ArgumentParser(description="Sign (and optionally send) a Lipana webhook body.")
    ap.add_argument("--body", required=True, help="Path to the JSON webhook body")
    ap.add_argument("--secret", help="Webhook secret. Defaults to LIPANA_WEBHOOK_SECRET / WEBHOOK_SECRET.")
    ap.add_argument("--url", help="Server base URL; when given, the webhook is POSTed to {url}/api/lipana/webhook")
    ap.add_argument("--header", default="x-lipana-signature", help="Signature header name (default: x-lipana-signature)")
    return ap


def main(argv=None):
    args = build_parser().parse_args(argv)

    if not os.path.exists(args.body):
        print(f"[!] Body file not found: {args.body}", file=sys.stderr)
        sys.exit(1)

    secret = args.secret or os.getenv("LIPANA_WEBHOOK_SECRET") or os.getenv("WEBHOOK_SECRET")
    if not secret:
        print("[!] No webhook secret given.", file=sys.stderr)
        sys.exit(1)

    with open(args.body, "rb") as f:
        body = f.read()
    try:
        json.loads(body)
    except ValueError:
        print(f"[!] Body is not valid JSON: {args.body}", file=sys.stderr)
        sys.exit(1)

    signature = compute_signature(secret, body)
    print(signature)
    if not args.url:
        return

    url = f"{args.url.rstrip('/')}/api/lipana/webhook"
    try:
        response = requests.post(
            url,
            data=body,
            headers={"Content-Type": "application/json", args.header: signature},
            timeout=15,
        )
    except requests.RequestException as exc:
        print(f"[!] Delivery failed: {exc}", file=sys.stderr)
        sys.exit(2)
    if response.status_code >= 400:
        print(f"[!] Server answered {response.status_code}: {response.text}", file=sys.stderr)
        sys.exit(2)
    print(f"[+] Delivered to {url}: {response.status_code}")


if __name__ == "__main__":
    main()
