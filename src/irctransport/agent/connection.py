"""Connect/reconnect policy for an agent's IRC session."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_exponential,
    wait_random,
)

from irctransport.core.constants import STABLE_SESSION_SECONDS

if TYPE_CHECKING:
    from irctransport.agent.agent import IrcAgent
    from irctransport.config import Config

# Transient failures worth another attempt (refused, reset, DNS, TLS, timeout)
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (OSError, TimeoutError)


class ConnectionManager:
    """Owns connect attempts and retry timing. Never retries once the agent is shutting down.

    Backoff carries across sessions: a reconnect after a dropped link waits
    the same exponential delay as a failed attempt, and the drop count only
    resets once a session has stayed up for ``STABLE_SESSION_SECONDS``.
    """

    def __init__(self, agent: IrcAgent, config: Config) -> None:
        self._agent = agent
        self._config = config
        self._task: asyncio.Task[bool] | None = None
        self._drops = 0
        self._connected_at: float | None = None
        self._reconnect_requested = False

    @property
    def pending(self) -> bool:
        """True while a connect task is in flight (including backoff sleeps)."""
        return self._task is not None and not self._task.done()

    def _stop_if_shutting_down(self, retry_state: RetryCallState) -> bool:
        return self._agent.shutting_down

    def _retrying(self) -> AsyncRetrying:
        max_attempts = self._config.irc_reconnect_max_attempts
        stop = stop_after_attempt(max_attempts) if max_attempts > 0 else stop_never
        min_delay = self._config.irc_reconnect_min_delay
        return AsyncRetrying(
            stop=stop | self._stop_if_shutting_down,
            wait=wait_exponential(multiplier=min_delay, min=min_delay, max=self._config.irc_reconnect_max_delay)
            + wait_random(0, min_delay),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=self._before_sleep,
            reraise=True,
        )

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._agent.log.warning(
            "IRC connect failed (attempt {}): {}, retrying in {:.1f}s",
            retry_state.attempt_number,
            exc,
            wait,
        )

    def _connect_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "hostname": self._config.irc_server,
            "port": self._config.irc_port,
            "tls": self._config.irc_tls,
            "tls_verify": self._config.irc_tls_verify,
        }
        if self._config.irc_password:
            kwargs["password"] = self._config.irc_password
        return kwargs

    def _drop_delay(self) -> float:
        """Backoff before reconnecting after a dropped session."""
        now = asyncio.get_running_loop().time()
        if self._connected_at is not None and now - self._connected_at >= STABLE_SESSION_SECONDS:
            self._drops = 0
        self._connected_at = None
        self._drops += 1
        retrying = self._retrying()
        state = RetryCallState(retrying, None, (), {})
        state.attempt_number = self._drops
        return retrying.wait(state)

    async def run(self, *, after_drop: bool = False) -> bool:
        """Connect with exponential backoff and jitter. True once connected, False if abandoned."""
        agent = self._agent
        kwargs = self._connect_kwargs()
        if after_drop:
            delay = self._drop_delay()
            if delay > 0:
                agent.log.info("Reconnecting in {:.1f}s (drop {} in a row)", delay, self._drops)
                await asyncio.sleep(delay)
        try:
            async for attempt in self._retrying():
                with attempt:
                    if agent.shutting_down:
                        agent.log.info("Agent shutting down; connect abandoned")
                        return False
                    await asyncio.wait_for(
                        agent.transport.connect(**kwargs),
                        timeout=self._config.irc_connect_timeout,
                    )
        except RETRYABLE_ERRORS as exc:
            if agent.shutting_down:
                agent.log.info("Agent shutting down; connect abandoned after error: {}", exc)
            else:
                agent.log.error(
                    "IRC connect to {}:{} gave up: {}",
                    kwargs["hostname"],
                    kwargs["port"],
                    exc,
                )
            return False

        self._connected_at = asyncio.get_running_loop().time()
        agent.log.info("IRC connection open to {}:{}", kwargs["hostname"], kwargs["port"])
        return True

    def schedule(self, *, after_drop: bool = False) -> asyncio.Task[bool] | None:
        """Start a connect task on the running loop unless one is already in flight.

        A drop reported while a task is in flight is remembered; if the
        transport is down when that task finishes, another cycle starts.
        """
        if self._agent.shutting_down:
            self._agent.log.debug("Not scheduling connect: agent shutting down")
            return None
        if self._task is not None and not self._task.done():
            if after_drop:
                self._reconnect_requested = True
            return self._task
        self._reconnect_requested = False
        self._task = asyncio.get_running_loop().create_task(self.run(after_drop=after_drop))
        self._task.add_done_callback(self._on_done)
        return self._task

    def _on_done(self, task: asyncio.Task[bool]) -> None:
        requested = False
        if task is self._task:
            requested, self._reconnect_requested = self._reconnect_requested, False
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._agent.log.opt(exception=exc).error("IRC connect task failed: {}", exc)
            return
        if requested and task.result() and not self._agent.transport.connected:
            self._agent.log.warning("IRC link dropped while connecting; reconnecting")
            self.schedule(after_drop=True)

    async def cancel(self) -> None:
        """Cancel any in-flight connect task, including one sleeping between retries."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
