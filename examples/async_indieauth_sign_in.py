import asyncio
import contextlib
import os
import sys

# Add src to path for running directly
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from anyio import create_task_group

from coreason_indieauth.config import IndieAuthConfig
from coreason_indieauth.exceptions import IndieAuthError
from coreason_indieauth.manager import IndieAuthManagerAsync
from coreason_indieauth.sessions import MemorySessionStore, SignedSessionStore


async def main() -> None:
    """
    Demonstrates the first leg of an IndieAuth sign-in using the async manager.
    Includes:
    - TaskGroup for concurrent discovery of several profile URLs
    - A signed session store so the PKCE verifier never leaves the server in clear
    - OpenTelemetry instrumentation (auto-applied in Manager)
    """
    print(">>> Starting Async IndieAuth Sign-in Example")

    config = IndieAuthConfig(
        client_id="https://app.example.com/",
        redirect_url="https://app.example.com/callback",
        scopes=["profile", "create"],
        http_timeout=5.0,
    )
    store = SignedSessionStore(MemorySessionStore(), SignedSessionStore.generate_secret(), max_age=600)

    async with IndieAuthManagerAsync(config, store) as manager:
        print(f">>> Manager Initialized. Client: {type(manager._client).__name__}")

        async def sign_in(session_key: str, me: str) -> None:
            try:
                redirect_url = await manager.begin_sign_in(session_key, me)
            except IndieAuthError as e:
                print(f"    - {me}: {type(e).__name__}: {e}")
                return
            print(f"    - {me}: redirect the browser to {redirect_url}")

        print(">>> Discovering endpoints concurrently...")
        async with create_task_group() as tg:
            tg.start_soon(sign_in, "session-a", "https://aaronparecki.com/")
            tg.start_soon(sign_in, "session-b", "https://tantek.com/")
            tg.start_soon(sign_in, "session-c", "http://localhost/")  # refused by the SSRF guard

        # The callback handler would then call:
        #   await manager.complete_sign_in("session-a", request.query_params)
        print(">>> Discovery finished.")


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main())
