"""FastAPI webhook receiver.

Verifies the delivery signature, then hands ``(delivery id, event kind,
payload)`` to the coordinator. A failing delivery only fails its own
response; nothing raised while handling it escapes the endpoint.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from release_lock import __version__
from release_lock.config.models import Config
from release_lock.github.auth import AuthToken, GitHubAppAuth
from release_lock.github.client import GitHubClientConfig
from release_lock.github.installations import InstallationTokenProvider
from release_lock.lock.coordinator import ReleaseLockCoordinator
from release_lock.lock.exceptions import AuthResolutionError, MalformedEvent, RemoteStateError
from release_lock.lock.gateway import CheckRunGateway, GitHubCheckRunGateway

from .security import verify_signature

logger = logging.getLogger(__name__)


def build_coordinator(
    config: Config,
) -> tuple[ReleaseLockCoordinator, InstallationTokenProvider]:
    """Wire the coordinator to GitHub using the app credentials in ``config``."""
    client_config = GitHubClientConfig(
        base_url=config.github.api_url,
        timeout=config.github.timeout,
        max_retries=config.github.max_retries,
        user_agent=config.github.user_agent,
    )
    token_provider = InstallationTokenProvider(
        GitHubAppAuth(config.github.app_id, config.github.private_key), client_config
    )

    def gateway_factory(token: AuthToken) -> CheckRunGateway:
        return GitHubCheckRunGateway(token_provider.installation_client(token))

    coordinator = ReleaseLockCoordinator(
        credentials=token_provider,
        gateway_factory=gateway_factory,
        policy_provider=config.lock_policy_for,
        event_timeout=config.lock.event_timeout,
        override_action_id=config.lock.override_action_id,
    )
    return coordinator, token_provider


def _error(status_code: int, detail: str, delivery_id: str | None) -> JSONResponse:
    return JSONResponse(
        {"status": "error", "detail": detail, "delivery_id": delivery_id},
        status_code=status_code,
    )


def create_app(
    config: Config, coordinator: ReleaseLockCoordinator | None = None
) -> FastAPI:
    """Create the webhook application.

    Args:
        config: Service configuration
        coordinator: Pre-built coordinator; built from ``config`` when omitted
    """
    token_provider: InstallationTokenProvider | None = None
    if coordinator is None:
        coordinator, token_provider = build_coordinator(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            f"Release lock listening on {config.server.webhook_path} "
            f"(check '{config.lock.check_name}', "
            f"workflow '{config.lock.deploy_workflow_path}')"
        )
        yield
        if token_provider is not None:
            await token_provider.close()

    app = FastAPI(title="Release Lock", version=__version__, lifespan=lifespan)
    app.state.coordinator = coordinator

    @app.post(config.server.webhook_path)
    async def github_webhook(
        request: Request,
        x_github_event: str | None = Header(default=None),
        x_github_delivery: str | None = Header(default=None),
        x_hub_signature_256: str | None = Header(default=None),
    ) -> JSONResponse:
        body = await request.body()
        if not verify_signature(body, x_hub_signature_256, config.github.webhook_secret):
            logger.warning(f"Invalid signature for delivery {x_github_delivery}")
            return _error(401, "invalid signature", x_github_delivery)

        if not x_github_event or not x_github_delivery:
            return _error(400, "missing X-GitHub-Event or X-GitHub-Delivery", x_github_delivery)

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.error(f"Invalid JSON payload for delivery {x_github_delivery}")
            return _error(400, "invalid JSON", x_github_delivery)

        try:
            outcome = await coordinator.handle(x_github_delivery, x_github_event, payload)
        except MalformedEvent as e:
            return _error(422, str(e), x_github_delivery)
        except (AuthResolutionError, RemoteStateError) as e:
            return _error(502, str(e), x_github_delivery)
        except Exception as e:
            logger.exception(f"Unexpected error handling delivery {x_github_delivery}")
            return _error(500, f"internal error: {type(e).__name__}", x_github_delivery)

        return JSONResponse(outcome.to_dict())

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": __version__,
            "check_name": config.lock.check_name,
            "deploy_workflow_path": config.lock.deploy_workflow_path,
        }

    return app
