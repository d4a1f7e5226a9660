"""
Simple client for the Ably token server.

Gets a token from the auth server, then lets the Ably SDK authenticate through
the same endpoint (authUrl) to publish to the user's rooms list channel and
the shared presence channel.
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone

import requests
from ably import AblyRest

# URL of the auth server
AUTH_SERVER_URL = "http://localhost:3002/auth"
USER_ID = "user_456"
USER_NAME = "Alice Johnson"


def fetch_token(auth_url, user_id, user_name):
    """Requests token details from the auth server."""
    response = requests.get(
        auth_url,
        headers={"X-User-Id": user_id, "X-User-Name": user_name},
        timeout=10,
    )
    if response.status_code != 200:
        raise RuntimeError(f"Auth server responded with {response.status_code}: {response.text}")
    return response.json()


async def publish_via_auth_url(auth_url, user_id, user_name):
    """Lets the Ably SDK fetch its own tokens from the auth server."""
    client = AblyRest(
        auth_url=auth_url,
        auth_headers={"X-User-Id": user_id, "X-User-Name": user_name},
    )
    try:
        channel_name = f"roomslist:{user_id}"
        message = {
            "text": "Hello from the simple client!",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "userId": user_id,
        }
        await client.channels.get(channel_name).publish("message", message)
        print(f"Message published to channel: {channel_name}")
        print(json.dumps(message, indent=2))

        await client.channels.get("presence").publish("status", {"status": "online", "user": user_id})
        print("Status published to channel: presence")
    finally:
        await client.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Get an Ably token and publish with it")
    parser.add_argument("--auth-url", default=AUTH_SERVER_URL, help="Auth server endpoint")
    parser.add_argument("--user-id", default=USER_ID)
    parser.add_argument("--user-name", default=USER_NAME)
    args = parser.parse_args(argv)

    print(f"User: {args.user_name} ({args.user_id})")
    print(f"Auth Server: {args.auth_url}\n")

    try:
        print("Step 1: Requesting token from auth server...")
        token_details = fetch_token(args.auth_url, args.user_id, args.user_name)
        print(f"Received token: {json.dumps(token_details, indent=2)}")

        print("\nStep 2: Publishing through the auth server's authUrl...")
        asyncio.run(publish_via_auth_url(args.auth_url, args.user_id, args.user_name))
    except requests.exceptions.ConnectionError:
        print(f"Error: Could not connect to {args.auth_url}")
        print("Make sure the auth server is running.")
        return 1
    except Exception as e:
        print(f"Error: {e}")
        return 1

    print("\nAll done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
