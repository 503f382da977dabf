import logging
from typing import Optional, Protocol

from smartfi.models import DEMO_PHONE_NUMBERS, DelegatedMode, DemoMode, ModeState
from smartfi.utils.compliance import audited, mask_phone
from smartfi.utils.error_handler import SmartFiError
from smartfi.utils.logging import log_audit_action

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    """The sign-in SDK backing Delegated mode."""

    def is_signed_in(self) -> bool: ...

    def current_user(self) -> Optional[str]: ...


class ModeController:
    """
    Switches between Demo and Delegated mode.

    Demo mode logs the session into one of the fixed demo profiles on the
    remote API and then loads all sources. Leaving a mode always discards the
    aggregated data so nothing leaks from one mode into the other.
    """

    def __init__(self, store, client, orchestrator, identity: Optional[IdentityProvider] = None):
        self.store = store
        self.client = client
        self.orchestrator = orchestrator
        self.identity = identity
        self.session_id = store.get_or_create_session_id()

        self.state = ModeState.UNSET
        self.demo_phone: Optional[str] = None

        persisted = store.get_persisted_mode()
        if isinstance(persisted, DemoMode):
            self.state = ModeState.DEMO
            self.demo_phone = persisted.phone_number
        elif isinstance(persisted, DelegatedMode):
            self.state = ModeState.DELEGATED
        if persisted is not None:
            logger.info(f"Restored {self.state.value} mode from previous session")

    @property
    def is_demo_mode(self) -> bool:
        return self.state == ModeState.DEMO

    @audited("ENTER_DEMO")
    async def enter_demo(self, phone_number: str) -> None:
        phone_number = (phone_number or "").strip()
        if phone_number not in DEMO_PHONE_NUMBERS:
            raise ValueError("Unknown demo phone number. Please select from available test numbers.")

        mode = DemoMode(phone_number=phone_number)
        if self.state == ModeState.DEMO and self.demo_phone == phone_number:
            self.store.set_mode(mode)
            return

        self.store.set_mode(mode)
        self.orchestrator.reset()
        self.state = ModeState.DEMO
        self.demo_phone = phone_number
        logger.info(f"Switched to demo mode with profile {mask_phone(phone_number)}")

        await self._login_and_fetch(phone_number)

    @audited("ENTER_DELEGATED")
    def enter_delegated(self) -> None:
        self.store.set_mode(DelegatedMode())
        if self.state == ModeState.DELEGATED:
            return

        self.state = ModeState.DELEGATED
        self.demo_phone = None
        self.orchestrator.reset()
        logger.info("Switched to delegated identity mode")

    async def resume(self) -> bool:
        """
        Re-establish a restored demo session. The remote API keeps logins in
        memory, so a restored demo mode has to log in again before fetching.
        """
        if self.state != ModeState.DEMO or not self.demo_phone:
            return False
        return await self._login_and_fetch(self.demo_phone)

    @audited("SIGN_OUT")
    def sign_out(self) -> None:
        self.store.clear_mode()
        self.state = ModeState.UNSET
        self.demo_phone = None
        self.orchestrator.reset()

    async def _login_and_fetch(self, phone_number: str) -> bool:
        try:
            await self.client.login(phone_number)
        except SmartFiError as e:
            # The mode switch stands; the next fetch reports its own error
            logger.error(f"Demo login failed: {e}")
            log_audit_action(self.session_id, "DEMO_LOGIN_FAILED", str(e))
            return False

        if self.state != ModeState.DEMO or self.demo_phone != phone_number:
            logger.info("Mode changed during demo login; skipping fetch")
            return False

        log_audit_action(self.session_id, "DEMO_LOGIN", f"Demo login completed for {phone_number}")
        await self.orchestrator.fetch_all()
        return True

    def is_authenticated(self) -> bool:
        if self.state == ModeState.DEMO:
            return True
        if self.state == ModeState.DELEGATED and self.identity is not None:
            return bool(self.identity.is_signed_in())
        return False

    def current_user(self) -> Optional[str]:
        if self.state == ModeState.DEMO:
            return f"Demo {mask_phone(self.demo_phone)}"
        if self.state == ModeState.DELEGATED and self.identity is not None:
            return self.identity.current_user()
        return None
