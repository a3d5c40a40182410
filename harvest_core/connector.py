"""
Connector base - the run template every site connector follows.

    open start page -> authentication gate -> harvest -> assemble

Subclasses supply site knowledge only: the login probe, the harvest steps
and the envelope metadata (platform, version, anchor and collection fields).
A run never raises: every path ends in a RunOutcome.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional

from .assembler import ResultAssembler, RunOutcome
from .config import Config, config as default_config
from .context import RunContext
from .errors import CollaboratorError, format_error
from .gate import AuthenticationGate, GateState
from .host import emit_progress
from .probe import ProbeEvaluator, ProbeResult
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class Connector(ABC):
    platform: str = ""
    version: str = "1.0.0-playwright"
    start_url: Optional[str] = None
    login_prompt: str = "Please log in."

    anchor_field: str = ""
    collection_field: str = ""
    singular: str = "item"
    plural: str = "items"

    def __init__(self, host, config: Optional[Config] = None, run_log=None):
        self.host = host
        self.config = config or default_config
        self.run_log = run_log
        self.evaluator = ProbeEvaluator(host)
        self.assembler = ResultAssembler(
            platform=self.platform,
            version=self.version,
            anchor_field=self.anchor_field,
            collection_field=self.collection_field,
            singular=self.singular,
            plural=self.plural,
        )

    # --- Site hooks ---
    @abstractmethod
    async def login_probe(self) -> ProbeResult:
        """Truthy when the browser session is logged in."""
        ...

    @abstractmethod
    async def harvest(self, ctx: RunContext) -> List[Mapping[str, Any]]:
        """Collect data and return the sections to assemble, in merge order."""
        ...

    async def before_login_check(self, ctx: RunContext) -> None:
        pass

    async def after_login(self, ctx: RunContext) -> None:
        await self.host.wait(self.config.login_settle_ms)

    # --- Helpers ---
    async def report(self, key: str, value: Any) -> None:
        await emit_progress(self.host, key, value)

    def warn(self, message: str) -> None:
        logger.warning(message)
        if self.run_log is not None:
            self.run_log.log_warning(message)

    async def open(self, url: str, settle_ms: Optional[int] = None) -> bool:
        """Navigate and settle. A failed navigation is logged, not raised."""
        ok = True
        try:
            await self.host.navigate(url)
        except CollaboratorError as e:
            self.warn(f"Navigation to {url} failed: {e}")
            ok = False
        await self.host.wait(self.config.settle_ms if settle_ms is None else settle_ms)
        return ok

    async def evaluate(self, script: str, arg: Any = None, default: Any = None) -> Any:
        """Evaluate a script, returning default when the host call fails."""
        try:
            return await self.host.evaluate(script, arg)
        except CollaboratorError as e:
            logger.debug(f"Script evaluation failed: {e}")
            return default

    def capture_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.config.capture_attempts,
            interval_ms=self.config.capture_interval_ms,
            wait_first=True,
        )

    # --- Template ---
    async def run(self) -> RunOutcome:
        ctx = RunContext(platform=self.platform, host=self.host, run_log=self.run_log)
        try:
            outcome = await self._run(ctx)
        except Exception as e:
            logger.exception(f"{self.platform} run failed")
            outcome = RunOutcome.failed(format_error(e, self.platform))
            await self.report("error", outcome.error)
        if self.run_log is not None:
            if outcome.success:
                self.run_log.log_json(outcome.data, "Result")
            else:
                self.run_log.log_error(outcome.error)
            self.run_log.finalize(outcome.success, ctx.elapsed_ms, outcome.error)
        return outcome

    async def _run(self, ctx: RunContext) -> RunOutcome:
        if self.start_url:
            ctx.heading("Navigation")
            await self.report("status", f"Navigating to {self.start_url}...")
            await self.open(self.start_url)

        ctx.heading("Authentication")
        await self.before_login_check(ctx)
        gate = AuthenticationGate(
            self.host,
            RetryPolicy(max_attempts=1, interval_ms=self.config.login_settle_ms, wait_first=True),
        )
        ctx.gate_state = await gate.ensure_authenticated(
            self.login_probe,
            self.login_prompt,
            self.config.login_poll_interval_ms,
        )
        if ctx.gate_state is not GateState.AUTHENTICATED:
            self.warn(f"Authentication gate ended in {ctx.gate_state.value}")
            error = f"Could not determine {self.anchor_field}: login was not completed"
            await self.report("error", error)
            return RunOutcome.failed(error)
        await self.after_login(ctx)

        ctx.heading("Harvest")
        sections = await self.harvest(ctx)

        ctx.heading("Assembly")
        record = self.assembler.assemble(*sections)
        if record is None:
            error = f"Could not determine {self.anchor_field}"
            await self.report("error", error)
            return RunOutcome.failed(error)

        outcome = RunOutcome.ok(record)
        await self.report("result", outcome.data)
        await self.report(
            "status",
            f"Complete! {record.export_summary.count} {record.export_summary.label} collected",
        )
        return outcome
