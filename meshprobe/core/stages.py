"""
Ordered setup stages.

``StageOrchestrator`` runs stages strictly in declaration order. Each stage
receives the environment produced by all earlier stages and may return a
mapping of new handles. The first failing stage stops the run: completed
stages are torn down in reverse order and a ``SetupFailure`` naming the stage
is raised, so callers never see a half-built environment.

``Suite`` is a fluent builder on top of the orchestrator for declaring a
suite's setup the way integration suites usually read::

    env = (
        Suite("ingress")
        .label("custom-setup")
        .require_environment(EnvironmentKind.KUBE)
        .setup(start_control_plane)
        .setup_on_env(EnvironmentKind.KUBE, install_gateway)
        .run(EnvironmentKind.KUBE)
    )
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from meshprobe.datastructures.type_aliases import (
    HandleUpdates,
    StageName,
    StagePosition,
    SuiteLabel,
)

from .environment import Environment, EnvironmentKind
from .errors import EnvironmentMismatch, SetupFailure

type StageResult = HandleUpdates | None
type StageFunction = Callable[[Environment], StageResult | Awaitable[StageResult]]
type TeardownFunction = Callable[[Environment], Any]


@dataclass(frozen=True, slots=True)
class Stage:
    """One ordered unit of setup work."""

    name: StageName
    run: StageFunction
    teardown: TeardownFunction | None = None
    only_on: EnvironmentKind | None = None

    def applies_to(self, kind: EnvironmentKind) -> bool:
        return self.only_on is None or self.only_on == kind


def _close_awaitable(value: object) -> None:
    if inspect.iscoroutine(value):
        value.close()


@dataclass(slots=True)
class StageOrchestrator:
    """Sequences setup stages and error-checks each one."""

    stages: Sequence[Stage]
    kind: EnvironmentKind = EnvironmentKind.NATIVE
    _completed: list[tuple[Stage, Environment]] = field(default_factory=list, init=False)

    def _should_run(self, position: StagePosition, stage: Stage) -> bool:
        if stage.applies_to(self.kind):
            logger.debug(f"Setup stage {position}/{len(self.stages)}: {stage.name}")
            return True
        logger.debug(
            f"Skipping setup stage {stage.name!r}: only runs on {stage.only_on}, "
            f"environment is {self.kind}"
        )
        return False

    def _commit(self, stage: Stage, env: Environment, result: object) -> Environment:
        if result is None:
            updated = env
        elif isinstance(result, Mapping):
            updated = env.extend(result)
        else:
            raise TypeError(
                f"stage returned {type(result).__name__}; expected a mapping of handles or None"
            )
        self._completed.append((stage, updated))
        return updated

    def _failure(
        self, position: StagePosition, stage: Stage, error: Exception
    ) -> SetupFailure:
        failure = SetupFailure(stage.name, position, str(error) or type(error).__name__)
        logger.error(str(failure))
        return failure

    def _ensure_idle(self) -> None:
        if self._completed:
            names = ", ".join(stage.name for stage, _ in self._completed)
            raise RuntimeError(
                f"setup already holds completed stages ({names}); call teardown() first"
            )

    def run(self) -> Environment:
        """Run every stage in order and return the populated environment.

        An orchestrator provisions once; tear down before running it again.
        """
        self._ensure_idle()
        env = Environment(kind=self.kind)
        for position, stage in enumerate(self.stages, start=1):
            if not self._should_run(position, stage):
                continue
            try:
                result = stage.run(env)
                if inspect.isawaitable(result):
                    _close_awaitable(result)
                    raise TypeError("stage is asynchronous; use run_async()")
                env = self._commit(stage, env, result)
            except Exception as error:
                self._rollback()
                raise self._failure(position, stage, error) from error

        logger.info(f"Setup complete: {len(self._completed)} stage(s), {len(env)} handle(s)")
        return env

    async def run_async(self) -> Environment:
        """Like ``run`` but awaits stages and teardowns that are coroutines."""
        self._ensure_idle()
        env = Environment(kind=self.kind)
        for position, stage in enumerate(self.stages, start=1):
            if not self._should_run(position, stage):
                continue
            try:
                result = stage.run(env)
                if inspect.isawaitable(result):
                    result = await result
                env = self._commit(stage, env, result)
            except Exception as error:
                await self._rollback_async()
                raise self._failure(position, stage, error) from error

        logger.info(f"Setup complete: {len(self._completed)} stage(s), {len(env)} handle(s)")
        return env

    def _rollback(self) -> None:
        for stage, env in reversed(self._completed):
            if stage.teardown is None:
                continue
            try:
                result = stage.teardown(env)
                if inspect.isawaitable(result):
                    _close_awaitable(result)
                    raise TypeError("teardown is asynchronous; use run_async()")
            except Exception as error:
                logger.warning(f"Teardown of stage {stage.name!r} failed: {error}")
        self._completed.clear()

    async def _rollback_async(self) -> None:
        for stage, env in reversed(self._completed):
            if stage.teardown is None:
                continue
            try:
                result = stage.teardown(env)
                if inspect.isawaitable(result):
                    await result
            except Exception as error:
                logger.warning(f"Teardown of stage {stage.name!r} failed: {error}")
        self._completed.clear()

    def teardown(self) -> None:
        """Tear down completed stages in reverse order.

        Every teardown runs; the first error is re-raised afterwards.
        """
        first_error: Exception | None = None
        for stage, env in reversed(self._completed):
            if stage.teardown is None:
                continue
            try:
                result = stage.teardown(env)
                if inspect.isawaitable(result):
                    _close_awaitable(result)
                    raise TypeError("teardown is asynchronous; use teardown_async()")
            except Exception as error:
                logger.warning(f"Teardown of stage {stage.name!r} failed: {error}")
                first_error = first_error or error
        self._completed.clear()
        if first_error is not None:
            raise first_error

    async def teardown_async(self) -> None:
        first_error: Exception | None = None
        for stage, env in reversed(self._completed):
            if stage.teardown is None:
                continue
            try:
                result = stage.teardown(env)
                if inspect.isawaitable(result):
                    await result
            except Exception as error:
                logger.warning(f"Teardown of stage {stage.name!r} failed: {error}")
                first_error = first_error or error
        self._completed.clear()
        if first_error is not None:
            raise first_error


def run_stages(
    stages: Sequence[Stage], kind: EnvironmentKind = EnvironmentKind.NATIVE
) -> Environment:
    """Run ``stages`` once and return the environment."""
    return StageOrchestrator(stages, kind=kind).run()


@dataclass(slots=True)
class Suite:
    """Fluent declaration of a suite's labels, requirements and setup."""

    name: str
    labels: set[SuiteLabel] = field(default_factory=set)
    required_kind: EnvironmentKind | None = None
    stages: list[Stage] = field(default_factory=list)

    def label(self, *labels: SuiteLabel) -> Suite:
        self.labels.update(labels)
        return self

    def require_environment(self, kind: EnvironmentKind) -> Suite:
        self.required_kind = kind
        return self

    def setup(
        self,
        fn: StageFunction,
        *,
        name: StageName | None = None,
        teardown: TeardownFunction | None = None,
    ) -> Suite:
        self.stages.append(Stage(self._stage_name(fn, name), fn, teardown))
        return self

    def setup_on_env(
        self,
        kind: EnvironmentKind,
        fn: StageFunction,
        *,
        name: StageName | None = None,
        teardown: TeardownFunction | None = None,
    ) -> Suite:
        self.stages.append(Stage(self._stage_name(fn, name), fn, teardown, only_on=kind))
        return self

    def _stage_name(self, fn: StageFunction, name: StageName | None) -> StageName:
        if name:
            return name
        fn_name = getattr(fn, "__name__", "")
        if fn_name and fn_name != "<lambda>":
            return fn_name
        return f"{self.name}-stage-{len(self.stages) + 1}"

    def build(self, kind: EnvironmentKind) -> StageOrchestrator:
        """Check the environment requirement and return an orchestrator."""
        if self.required_kind is not None and self.required_kind != kind:
            raise EnvironmentMismatch(self.name, str(self.required_kind), str(kind))
        labels = ", ".join(sorted(self.labels)) or "none"
        logger.info(f"Suite {self.name!r} on {kind} (labels: {labels})")
        return StageOrchestrator(list(self.stages), kind=kind)

    def run(self, kind: EnvironmentKind = EnvironmentKind.NATIVE) -> Environment:
        # use build() directly when the stages need tearing down afterwards
        return self.build(kind).run()

    async def run_async(
        self, kind: EnvironmentKind = EnvironmentKind.NATIVE
    ) -> Environment:
        return await self.build(kind).run_async()
