#!/usr/bin/env python3
"""Quick helper: check a wallet's balance from the command line."""

from __future__ import annotations

import os
import sys

from bclient import BClientError, ClientConfig, HttpClient

WALLET_URL = os.environ.get("BCLIENT_WALLET_URL", "http://127.0.0.1:8334")
API_KEY = os.environ.get("BCLIENT_API_KEY")


def main() -> None:
    wallet_id = sys.argv[1] if len(sys.argv) > 1 else "primary"
    client = HttpClient(ClientConfig.from_url(WALLET_URL, api_key=API_KEY))

    try:
        balance = client.get("/wallet/{id}/balance", {"id": wallet_id})
    except BClientError as exc:
        print(f"Error ({exc.status}): {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        client.close()

    if balance is None:
        print(f"No wallet named {wallet_id!r}", file=sys.stderr)
        sys.exit(1)
    print(f"Confirmed   : {balance['confirmed']}")
    print(f"Unconfirmed : {balance['unconfirmed']}")


if __name__ == "__main__":
    main()
