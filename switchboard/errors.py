"""Error hierarchy for the conversation orchestrator.

All orchestrator-level conditions inherit from SwitchboardError so callers
can catch the whole family in one place. Store backends wrap driver errors
in StoreError subclasses, keeping the original exception on ``cause``.
"""


class SwitchboardError(Exception):
    """Base exception for all orchestrator errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidAuthTransitionError(SwitchboardError):
    """Raised when an auth transition is attempted from a state that forbids it.

    This is a logic defect. The orchestrator recovers by restarting the
    auth flow from Anonymous and telling the user.
    """

    def __init__(self, current_state: str, attempted: str) -> None:
        super().__init__(
            f"Cannot apply '{attempted}' while auth state is '{current_state}'"
        )
        self.current_state = current_state
        self.attempted = attempted


class UnauthorizedError(SwitchboardError):
    """Raised by the account data capability when the session is not authenticated."""

    pass


class TicketAlreadyClosedError(SwitchboardError):
    """Raised when a closed handoff ticket receives another resolution."""

    def __init__(self, ticket_id: str, state: str) -> None:
        super().__init__(f"Ticket {ticket_id} is already closed ({state})")
        self.ticket_id = ticket_id
        self.state = state


class TicketNotFoundError(SwitchboardError):
    """Raised when a handoff ticket id is unknown to the queue."""

    pass


class ProviderUnavailableError(SwitchboardError):
    """Raised when a capability call fails or times out after its retry."""

    def __init__(self, provider: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Capability provider '{provider}' is unavailable")
        self.provider = provider
        self.cause = cause


class SessionNotFoundError(SwitchboardError):
    """Raised by a store when a session lookup misses.

    SessionManager treats it as a request to create a fresh session.
    """

    pass


class SessionBusyError(SwitchboardError):
    """Raised when the per-session lock cannot be acquired in time."""

    pass


class StoreError(SwitchboardError):
    """Base exception for persistence backend failures."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):  # noqa: A001
    """Raised when the store backend cannot be reached.

    Examples:
        - Redis server unavailable
        - Network errors
    """

    pass


class SessionPersistError(StoreError):
    """Raised when a session could not be saved after all retries.

    The in-memory session has already been rolled back to its last
    durably saved state when this is raised.
    """

    pass


class ConfigurationError(SwitchboardError):
    """Raised when a configuration file cannot be used.

    Examples:
        - Invalid TOML syntax
        - A section no settings model knows about, usually a typo
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path
