"""Invocation loop - fetch, dispatch, submit, repeat

Two states: idle (about to fetch) and processing (handler running,
outcome pending). Every fetched invocation is resolved by exactly one
submission before the next fetch. Fetch failures are retried forever
with a bounded exponential backoff; nothing ends the loop except
process termination.
"""

import time
from typing import Callable, Optional, Protocol

from tenacity import Retrying, retry_if_exception_type, stop_never, wait_exponential

from shellrt.client import RuntimeApiClient
from shellrt.config import DEFAULT_BACKOFF_INITIAL, DEFAULT_BACKOFF_MAX, RuntimeConfig
from shellrt.errors import RuntimeApiError, TransportError
from shellrt.handler import Handler, ShellHandler
from shellrt.invocation import Failure, Invocation, Outcome, Success
from shellrt.logger import get_logger


logger = get_logger(__name__)


class InvocationSource(Protocol):
    """The runtime API operations the loop depends on"""

    def fetch_next_invocation(self) -> Invocation:
        ...

    def submit_success(self, request_id: str, output: bytes) -> None:
        ...

    def submit_failure(self, request_id: str, message: str, error_type: str = ...) -> None:
        ...


def _log_fetch_failure(retry_state) -> None:
    error = retry_state.outcome.exception()
    logger.warning(
        "fetch_failed",
        error_kind=type(error).__name__,
        error=str(error),
        attempt=retry_state.attempt_number,
        retry_in=retry_state.next_action.sleep,
    )


class InvocationLoop:
    """Runs invocations one at a time against a handler"""

    def __init__(
        self,
        client: InvocationSource,
        handler: Handler,
        backoff_initial: float = DEFAULT_BACKOFF_INITIAL,
        backoff_max: float = DEFAULT_BACKOFF_MAX,
        sleep: Callable[[float], None] = time.sleep,
        stop=stop_never,
    ):
        """Create a loop

        Args:
            client: Runtime API operations
            handler: Handler bridge
            backoff_initial: First retry delay after a failed fetch, in seconds
            backoff_max: Cap for the doubling retry delay
            sleep: Sleep function used between fetch attempts
            stop: tenacity stop condition for fetch retries; the default
                never gives up
        """
        self.client = client
        self.handler = handler
        # Each fetch starts a fresh attempt count, so the delay resets after success
        self.fetch_retrying = Retrying(
            wait=wait_exponential(multiplier=backoff_initial, max=backoff_max),
            retry=retry_if_exception_type(RuntimeApiError),
            stop=stop,
            sleep=sleep,
            before_sleep=_log_fetch_failure,
            reraise=True,
        )

    @classmethod
    def from_config(
        cls,
        config: RuntimeConfig,
        handler: Optional[Handler] = None,
        sleep: Callable[[float], None] = time.sleep,
        stop=stop_never,
    ) -> "InvocationLoop":
        """Wire a client, shell handler and fetch backoff from configuration"""
        if handler is None:
            handler = ShellHandler(config.handler, task_root=config.task_root)
        return cls(
            RuntimeApiClient(config),
            handler,
            backoff_initial=config.backoff_initial,
            backoff_max=config.backoff_max,
            sleep=sleep,
            stop=stop,
        )

    def run(self, max_iterations: Optional[int] = None) -> None:
        """Run forever, or for `max_iterations` cycles"""
        iterations = 0
        while max_iterations is None or iterations < max_iterations:
            self.run_once()
            iterations += 1

    def fetch(self) -> Invocation:
        """Fetch the next invocation, retrying runtime API errors with backoff"""
        return self.fetch_retrying(self.client.fetch_next_invocation)

    def run_once(self) -> Optional[Outcome]:
        """One cycle: fetch, dispatch, submit

        Returns:
            The submitted outcome, or None when a finite stop condition
            ended the fetch retries
        """
        try:
            invocation = self.fetch()
        except RuntimeApiError as e:
            logger.error("fetch_abandoned", error_kind=type(e).__name__, error=str(e))
            return None

        logger.debug("invocation_received", request_id=invocation.request_id, payload_size=len(invocation.payload))

        outcome = self.dispatch(invocation)
        self.submit(invocation.request_id, outcome)
        return outcome

    def dispatch(self, invocation: Invocation) -> Outcome:
        """Invoke the handler; any exception becomes a Failure"""
        try:
            output = self.handler.invoke(invocation.payload)
        except Exception as e:
            logger.warning("handler_failed", request_id=invocation.request_id, error=str(e))
            return Failure(message=str(e))
        return Success(output=output)

    def submit(self, request_id: str, outcome: Outcome) -> bool:
        """Submit the outcome; a transport failure is logged, not raised

        Returns:
            True if the submission was written
        """
        try:
            if isinstance(outcome, Success):
                self.client.submit_success(request_id, outcome.output)
            else:
                self.client.submit_failure(request_id, outcome.message, outcome.error_type)
        except TransportError as e:
            logger.error(
                "submit_failed",
                request_id=request_id,
                outcome=type(outcome).__name__,
                error=str(e),
            )
            return False
        return True
