#!/usr/bin/env python3
"""
Smoke Test Script

Validates configuration and connectivity without placing a real call.

Checks:
1. Required environment variables for the active VOICE_MODE (without printing secrets)
2. OpenAI model is visible to the configured key
3. Webhook answers a simulated greeting turn and a completed-call callback
"""

import asyncio
import os
import sys
import xml.etree.ElementTree as ET

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

OPENAI_MODELS_URL = "https://api.openai.com/v1/models"


def print_header(text: str) -> None:
    """Print a section header."""
    print(f"\n{'=' * 50}")
    print(f" {text}")
    print('=' * 50)


def print_ok(text: str) -> None:
    print(f"  [OK] {text}")


def print_error(text: str) -> None:
    print(f"  [ERR] {text}")


def print_warn(text: str) -> None:
    print(f"  [WARN] {text}")


def check_configuration() -> bool:
    """Run the configuration gate the webhook uses on every turn."""
    print_header("Checking Configuration")

    from src.autocaller.config import get_config

    config = get_config()
    print_ok(f"VOICE_MODE: {config.voice_mode}")
    print_ok(f"Webhook URL: {config.webhook_url or '(APP_URL not set)'}")

    missing = config.missing_settings()
    for name in missing:
        print_error(f"{name}: NOT SET")

    if not missing:
        print_ok("All required variables set")
    if config.uses_elevenlabs and not config.twilio_auth_token:
        print_warn("TWILIO_AUTH_TOKEN not set (only needed for protected recordings)")

    return not missing


async def check_openai_model() -> bool:
    """Validate the configured chat model is available."""
    print_header("Validating OpenAI Model")

    import httpx

    from src.autocaller.config import get_config

    config = get_config()
    if not config.openai_api_key:
        print_error("OPENAI_API_KEY not set")
        return False

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                OPENAI_MODELS_URL,
                headers={"Authorization": f"Bearer {config.openai_api_key}"},
            )
    except httpx.RequestError as e:
        print_error(f"Failed to connect to OpenAI API: {e}")
        return False

    if response.status_code != 200:
        print_error(f"API returned status {response.status_code}")
        return False

    models = [m.get("id") for m in response.json().get("data", [])]
    if config.openai_model in models:
        print_ok(f"Model '{config.openai_model}' available")
        return True

    print_error(f"Model '{config.openai_model}' NOT FOUND")
    return False


def check_webhook() -> bool:
    """Simulate the first and last callbacks of a call against the in-process app."""
    print_header("Simulating Webhook Turns")

    try:
        from fastapi.testclient import TestClient
        from server.app import app
    except ImportError as e:
        print_error(f"Cannot import server: {e}")
        return False

    client = TestClient(app)

    greeting = client.post("/twilio-webhook", data={"CallSid": "CAsmoke", "CallStatus": "ringing"})
    if greeting.status_code != 200:
        print_error(f"Greeting turn returned status {greeting.status_code}")
        return False

    root = ET.fromstring(greeting.text)
    gather = root.find("Gather")
    if gather is None:
        print_error("Greeting has no <Gather> (configuration gate closed?)")
        return False
    print_ok(f"Greeting gathers speech, action={gather.get('action')}")

    done = client.post("/twilio-webhook", data={"CallSid": "CAsmoke", "CallStatus": "completed"})
    if done.status_code != 200 or done.text != "OK":
        print_error(f"Completed callback returned {done.status_code}: {done.text[:80]}")
        return False
    print_ok("Completed callback acknowledged")

    return True


async def main() -> int:
    """Run all smoke tests."""
    print("\n" + "=" * 50)
    print(" AUTOCALLER VOICE AGENT - SMOKE TEST")
    print("=" * 50)

    results = []
    results.append(("Configuration", check_configuration()))
    results.append(("OpenAI Model", await check_openai_model()))
    results.append(("Webhook", check_webhook()))

    print_header("Summary")

    all_passed = True
    for name, passed in results:
        if passed:
            print_ok(name)
        else:
            print_error(name)
            all_passed = False

    print()

    if all_passed:
        print("[OK] All checks passed!")
        print("\nNext steps:")
        print("  1. Run 'autocaller-server' to start the server")
        print("  2. Expose it (e.g. 'ngrok http 7860') and set APP_URL to the public URL")
        print("  3. Point your outbound call's webhook at $APP_URL/twilio-webhook")
        return 0

    print("[ERR] Some checks failed. Please fix the issues above.")
    return 1


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
