"""
Test Client for Voice Navigation API.
Simple script to exercise the API against a running server.
"""

import asyncio
import httpx


BASE_URL = "http://localhost:8000"
NAV_URL = f"{BASE_URL}/api/v1/navigation"
GUIDANCE_URL = f"{BASE_URL}/api/v1/guidance"

ARTISAN = {
    "uid": "artisan-001",
    "role": "artisan",
    "name": "Meera",
    "profession": "Potter",
    "description": "Hand-thrown terracotta from Khurja"
}


def show(data: dict):
    print(f"   🤖 {data.get('message')}")
    print(
        f"   intent={data.get('intent')} confidence={data.get('confidence')} "
        f"route={data.get('targetRoute')} executed={data.get('executed')}"
    )
    if data.get("suggestions"):
        print(f"   💡 {data['suggestions']}")
    if data.get("errorType"):
        print(f"   ⚠️  {data['errorType']} canRetry={data.get('canRetry')} retryCount={data.get('retryCount')}")


async def test_health():
    """Test health endpoints."""
    print("\n🏥 Testing Health Endpoints...")

    async with httpx.AsyncClient() as client:
        response = await client.get(f"{BASE_URL}/health")
        print(f"   /health: {response.status_code}")
        print(f"   {response.json()}")

        response = await client.get(f"{BASE_URL}/health/ready")
        print(f"   /health/ready: {response.status_code}")
        print(f"   {response.json()}")


async def test_navigation():
    """Test English and Hindi navigation."""
    print("\n🧭 Testing Navigation...")

    commands = [
        {"message": "go to dashboard", "language": "en-US"},
        {"message": "डैशबोर्ड पर जाएं", "language": "hi-IN"},
        {"message": "open marketplace", "language": "en-US"},
        {"message": "go back", "language": "en-US"},
    ]

    async with httpx.AsyncClient(timeout=30.0) as client:
        for cmd in commands:
            print(f"\n   📤 [{cmd['language']}] {cmd['message']}")
            response = await client.post(
                f"{NAV_URL}/process",
                json={**cmd, "sessionId": "client-demo", "userProfile": ARTISAN}
            )
            if response.status_code == 200:
                show(response.json())
            else:
                print(f"   ❌ Error: {response.status_code}")
                print(f"   {response.text}")


async def test_confirmation():
    """Test a navigation that asks for confirmation."""
    print("\n✅ Testing Confirmation Flow...")

    async with httpx.AsyncClient(timeout=30.0) as client:
        response = await client.post(
            f"{NAV_URL}/process",
            json={"message": "create product", "sessionId": "client-demo", "userProfile": ARTISAN}
        )
        data = response.json()
        show(data)

        if data.get("requiresConfirmation"):
            response = await client.post(
                f"{NAV_URL}/confirm",
                json={"confirmationId": data["confirmationId"], "confirmed": True}
            )
            show(response.json())


async def test_retry():
    """Test the retry prompt for an unrecognized command."""
    print("\n🔁 Testing Retry Prompts...")

    async with httpx.AsyncClient(timeout=30.0) as client:
        for _ in range(3):
            response = await client.post(
                f"{NAV_URL}/process",
                json={"message": "blah blah nonsense", "sessionId": "client-retry"}
            )
            show(response.json())


async def test_guidance():
    """Test the basic tutorial."""
    print("\n🎓 Testing Guidance...")

    async with httpx.AsyncClient(timeout=30.0) as client:
        response = await client.post(
            f"{GUIDANCE_URL}/tutorials/basic_voice_navigation/start",
            json={"userId": "client-user"}
        )
        print(f"   {response.json()['message']}")

        for command in ["hello", "open the shop", "go to dashboard", "help"]:
            response = await client.post(
                f"{GUIDANCE_URL}/tutorials/step",
                json={"userId": "client-user", "command": command}
            )
            print(f"   📤 {command} → {response.json()['message']}")


async def main():
    """Run all tests."""
    print("=" * 60)
    print("🧪 Voice Navigation API Test Client")
    print("=" * 60)
    print(f"Target: {BASE_URL}")

    try:
        await test_health()
        await test_navigation()
        await test_confirmation()
        await test_retry()
        await test_guidance()

        print("\n" + "=" * 60)
        print("✅ All tests completed!")
        print("=" * 60)

    except httpx.ConnectError:
        print("\n❌ Cannot connect to server. Make sure it's running:")
        print("   uvicorn voice_navigation.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
