"""Orchestrator client errors.

Error codes group failures by the step that raised them:
- E1xx: orchestrator binary missing, outdated, or failed to install
- E2xx: launch rejected
- E3xx: state query failed
- E4xx: teardown failed
- E5xx: manifest scaffolding failed
"""


class OrchestratorError(Exception):
    """Base exception for orchestrator client errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class DependencyError(OrchestratorError):
    """Orchestrator binary missing or outdated."""

    def __init__(self, message: str):
        super().__init__("E100", message)


class InstallError(OrchestratorError):
    """Install or upgrade of the orchestrator binary failed."""

    def __init__(self, message: str):
        super().__init__("E101", message)


class LaunchError(OrchestratorError):
    """Orchestrator rejected the launch invocation."""

    def __init__(self, message: str):
        super().__init__("E200", message)


class PollTransportError(OrchestratorError):
    """State query could not be completed."""

    def __init__(self, message: str):
        super().__init__("E300", message)


class TeardownError(OrchestratorError):
    """Orchestrator failed to tear the environment down."""

    def __init__(self, message: str):
        super().__init__("E400", message)


class InitError(OrchestratorError):
    """Orchestrator failed to scaffold a manifest."""

    def __init__(self, message: str):
        super().__init__("E500", message)
