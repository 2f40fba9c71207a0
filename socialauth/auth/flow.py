"""
Linking orchestrator: one OAuth callback from code to session.

    AwaitingCode -> ExchangingToken -> FetchingProfile -> ResolvingIdentity
        -> LinkingCredential -> IssuingSession -> Done

Any LinkingError raised by a stage moves the flow straight to Failed with
that error attached. Nothing is retried here: authorization codes are
single-use, so recovering means restarting the login.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from socialauth.auth.identity import IdentityResolver
from socialauth.auth.jwt import SessionIssuer, SessionToken
from socialauth.auth.linking import AccountLinker
from socialauth.auth.providers.base import ProviderAdapter
from socialauth.exceptions import LinkingError

logger = logging.getLogger(__name__)


class LinkState(str, enum.Enum):
    AWAITING_CODE = "awaiting_code"
    EXCHANGING_TOKEN = "exchanging_token"
    FETCHING_PROFILE = "fetching_profile"
    RESOLVING_IDENTITY = "resolving_identity"
    LINKING_CREDENTIAL = "linking_credential"
    ISSUING_SESSION = "issuing_session"
    DONE = "done"
    FAILED = "failed"


@dataclass
class LinkOutcome:
    state: LinkState = LinkState.AWAITING_CODE
    session: Optional[SessionToken] = None
    error: Optional[LinkingError] = None
    # State the flow was in when it failed
    failed_in: Optional[LinkState] = None
    is_new_user: bool = False
    history: list[LinkState] = field(default_factory=lambda: [LinkState.AWAITING_CODE])

    @property
    def succeeded(self) -> bool:
        return self.state is LinkState.DONE

    def advance(self, state: LinkState) -> None:
        self.state = state
        self.history.append(state)

    def fail(self, error: LinkingError) -> "LinkOutcome":
        self.failed_in = self.state
        self.error = error
        self.advance(LinkState.FAILED)
        return self


class LinkingOrchestrator:
    def __init__(
        self,
        provider: ProviderAdapter,
        resolver: IdentityResolver,
        linker: AccountLinker,
        issuer: SessionIssuer,
    ):
        self.provider = provider
        self.resolver = resolver
        self.linker = linker
        self.issuer = issuer

    async def complete(self, code: str) -> LinkOutcome:
        outcome = LinkOutcome()
        platform = self.provider.platform.label
        try:
            outcome.advance(LinkState.EXCHANGING_TOKEN)
            token = await self.provider.exchange_code_for_token(code)

            outcome.advance(LinkState.FETCHING_PROFILE)
            profile = await self.provider.fetch_profile(token)

            outcome.advance(LinkState.RESOLVING_IDENTITY)
            user, outcome.is_new_user = await asyncio.to_thread(self.resolver.resolve, profile)

            outcome.advance(LinkState.LINKING_CREDENTIAL)
            await self.linker.link(user, profile)

            outcome.advance(LinkState.ISSUING_SESSION)
            outcome.session = self.issuer.issue(user)
        except LinkingError as e:
            logger.warning("%s login failed in %s: %s", platform, outcome.state.value, e)
            return outcome.fail(e)

        outcome.advance(LinkState.DONE)
        logger.info(
            "%s login completed for user %s (tenant %s, new=%s)",
            platform, outcome.session.user_id, outcome.session.tenant_id, outcome.is_new_user
        )
        return outcome
