"""Error taxonomy shared by every provider path."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .foundry.types import Run


class AgentRelayError(Exception):
    """Base class for errors raised by the relay."""


class ConfigurationMissing(AgentRelayError):
    """A provider path cannot start because required settings are unset."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Required configuration is not set: " + ", ".join(self.missing)
        )


class AgentServiceError(AgentRelayError):
    """The hosted agent service answered with a non-success status."""

    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class SubmissionFailed(AgentRelayError):
    """A message, run or approval batch was rejected by the agent service."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class PollingTransportError(AgentRelayError):
    """Polling a run kept failing after the retry budget was spent."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class RunTerminated(AgentRelayError):
    """A run stopped without completing."""

    def __init__(self, run: Run, message: str | None = None) -> None:
        self.run = run
        self.status = run.status
        self.last_error = run.last_error.message if run.last_error else None
        super().__init__(
            message
            or f"Run failed or was cancelled. Status: {run.status}. Last Error: {self.last_error}"
        )


class RunFailed(RunTerminated):
    pass


class RunCancelled(RunTerminated):
    pass


class RunExpired(RunTerminated):
    pass


class RunTimeout(RunTerminated):
    """The run did not reach a terminal status within the configured bound."""

    def __init__(self, run: Run, waited: float, polls: int) -> None:
        self.waited = waited
        self.polls = polls
        super().__init__(
            run,
            f"Run {run.id} did not finish after {waited:.1f}s ({polls} polls); last status: {run.status}",
        )


class EmptyThread(AgentRelayError):
    """The thread has no messages to extract a reply from."""

    def __init__(self, thread_id: str) -> None:
        super().__init__(f"Thread {thread_id} has no messages.")
        self.thread_id = thread_id


class TeardownFailed(AgentRelayError):
    """At least one remote deletion failed; ``errors`` holds every failure in order."""

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = list(errors)
        super().__init__(f"Teardown failed: {self.errors[0]}")


class ProcessLaunchFailed(AgentRelayError):
    """The local agent process could not be started or did not finish in time."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause
