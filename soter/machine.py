"""Transition engine.

A StateMachine drives one context object through the states of an
instruction table. ``trigger(name)`` resolves the candidate transitions for
``name``, checks the current state against the union of their origins, then
tries the candidates in declaration order:

    conditions -> effects -> commit

A candidate rejected by a false condition falls through to the next one.
Undefined conditions, undefined effects and effects that raise abort the
whole call. Every call produces a TransitionResult; in exception mode a
failed result is raised inside a TransitionError.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from soter.config.settings import MachineConfig
from soter.errors import ConfigurationError, StateUndefinedError, TransitionError
from soter.instructions import Instructions, Transition
from soter.results import (
    AvailableTransition,
    ConditionAttempt,
    ConditionStatus,
    EffectAttempt,
    FailureKind,
    TransitionAttempt,
    TransitionFailure,
    TransitionResult,
)
from soter.utils.logging import get_logger, reset_trigger, set_trigger
from soter.utils.snapshot import MISSING

logger = get_logger("machine")


@dataclass
class TriggerOptions:
    """
    Per-call options for ``trigger``.

    Attributes:
        on_error: Called as ``on_error(context, precontext)`` with snapshots
            when an effect raises
        throw_exceptions: Overrides the machine default for this call
    """

    on_error: Optional[Callable[[Any, Any], None]] = None
    throw_exceptions: Optional[bool] = None


@dataclass
class _Run:
    """Bookkeeping for one trigger call."""

    trigger: str
    initial: Any
    precontext: Any
    throw: bool
    on_error: Optional[Callable[[Any, Any], None]]
    attempts: list[TransitionAttempt] = field(default_factory=list)


class StateMachine:
    """
    Engine holding a context reference and its instruction table.

    The context is mutated in place: effects run against it and the state is
    written back through the configured accessor. Not thread-safe; serialize
    calls to one machine.
    """

    def __init__(
        self,
        context: Any,
        instructions: Union[Instructions, Iterable[Any], Mapping[str, Any]],
        config: Optional[MachineConfig] = None,
        **options: Any,
    ) -> None:
        """
        Initialize the machine.

        Args:
            context: Object being driven
            instructions: Instruction table, state list or transition map
            config: Base configuration (defaults to MachineConfig())
            **options: Individual MachineConfig fields to override

        Raises:
            ConfigurationError: If the resulting options are invalid
        """
        config = (config or MachineConfig()).replace(**options)
        validation = config.validate()
        if validation.is_err():
            raise ConfigurationError(validation.unwrap_err())

        if not isinstance(instructions, Instructions):
            instructions = Instructions(instructions)

        self._context = context
        self._instructions = instructions
        self._config = config
        self._logger = get_logger("machine", machine=config.name) if config.name else logger
        self.history: list[TransitionResult] = []

    @property
    def context(self) -> Any:
        """The live context object."""
        return self._context

    @property
    def config(self) -> MachineConfig:
        return self._config

    @property
    def instructions(self) -> Instructions:
        return self._instructions

    @property
    def states(self) -> tuple:
        """Known states in insertion order."""
        return self._instructions.states

    @property
    def state(self) -> Any:
        """Current state of the context."""
        return self._get_state()

    def _get_state(self) -> Any:
        state = self._config.get_state(self._context, self._config.key)
        if state is None:
            raise StateUndefinedError(self._config.key)
        return state

    def _set_state(self, state: Any) -> None:
        old_state = self._get_state()
        self._config.on_before_transition(state, old_state, self._context)
        self._config.set_state(self._context, state, self._config.key)
        new_state = self._get_state()
        self._log("state_changed", from_state=old_state, to_state=new_state)
        self._config.on_transition(new_state, old_state, self._context)

    def _copy(self) -> Any:
        return self._config.context_copier(self._context)

    def _log(self, event: str, **fields: Any) -> None:
        if self._config.verbose:
            self._logger.info(event, **fields)
        else:
            self._logger.debug(event, **fields)

    def to(self, state: Any) -> None:
        """
        Force the context into a known state.

        Conditions and effects are skipped; the transition hooks still run.

        Raises:
            TransitionError: DestinationInvalid if the state is unknown,
                whatever ``throw_exceptions`` says
        """
        if not self._instructions.has_state(state):
            raise TransitionError(
                FailureKind.DESTINATION_INVALID,
                f"Destination {state} is not included in the list of existing states",
                None,
            )
        self._set_state(state)

    def trigger(
        self,
        trigger: str,
        props: Optional[Mapping[str, Any]] = None,
        options: Optional[TriggerOptions] = None,
        *,
        on_error: Optional[Callable[[Any, Any], None]] = None,
        throw_exceptions: Optional[bool] = None,
    ) -> TransitionResult:
        """
        Attempt the transitions registered for a trigger.

        Args:
            trigger: Trigger name
            props: Keyword arguments passed to every effect
            options: Per-call options
            on_error: Shortcut for ``options.on_error``
            throw_exceptions: Shortcut for ``options.throw_exceptions``

        Returns:
            TransitionResult describing the call

        Raises:
            TransitionError: On failure, when exceptions are enabled
        """
        options = options or TriggerOptions()
        if on_error is not None:
            options = TriggerOptions(on_error=on_error, throw_exceptions=options.throw_exceptions)
        if throw_exceptions is not None:
            options = TriggerOptions(on_error=options.on_error, throw_exceptions=throw_exceptions)

        token = set_trigger(trigger)
        try:
            return self._trigger(trigger, props, options)
        finally:
            reset_trigger(token)

    def _trigger(
        self,
        trigger: str,
        props: Optional[Mapping[str, Any]],
        options: TriggerOptions,
    ) -> TransitionResult:
        run = _Run(
            trigger=trigger,
            initial=self._get_state(),
            precontext=self._copy(),
            throw=(
                options.throw_exceptions
                if options.throw_exceptions is not None
                else self._config.throw_exceptions
            ),
            on_error=options.on_error,
        )
        props = dict(props or {})

        candidates = self._instructions.candidates(trigger)
        if not candidates:
            return self._fail(
                run,
                self._failure(FailureKind.TRIGGER_UNDEFINED, trigger, undefined=True),
                f'Trigger "{trigger}" is not defined in the machine.',
            )

        # The origin check spans every candidate: a trigger is only
        # inapplicable when no candidate lists the current state.
        if run.initial not in self._instructions.origins(trigger):
            return self._fail(
                run,
                self._failure(FailureKind.ORIGIN_DISALLOWED, trigger),
                f"Invalid transition from {run.initial} using trigger {trigger}",
            )

        for index, transition in enumerate(candidates):
            has_next = index + 1 < len(candidates)
            attempt = TransitionAttempt(
                trigger=trigger,
                transition=transition,
                context=self._copy(),
            )
            run.attempts.append(attempt)

            outcome = self._check_conditions(run, attempt, transition, has_next)
            if isinstance(outcome, TransitionResult):
                return outcome
            if not outcome:
                continue

            outcome = self._run_effects(run, attempt, transition, props)
            if outcome is not None:
                return outcome

            self._set_state(transition.destination)
            attempt.success = True
            break

        result = self._build_result(run, success=True)
        self._record(result)
        return result

    def _check_conditions(
        self,
        run: _Run,
        attempt: TransitionAttempt,
        transition: Transition,
        has_next: bool,
    ) -> Union[bool, TransitionResult]:
        """
        Evaluate a candidate's conditions in order.

        Returns:
            True if all pass, False to fall through to the next candidate,
            or the failed result when the call is over
        """
        for name in transition.conditions:
            value = self._config.resolver(self._context, name)
            condition = ConditionAttempt(name=name, context=self._copy())
            attempt.conditions.append(condition)

            if value is MISSING:
                attempt.failure = self._failure(
                    FailureKind.CONDITION_UNDEFINED, run.trigger, name, undefined=True,
                )
                return self._fail(
                    run,
                    attempt.failure,
                    f"Condition {name} is not defined in the machine.",
                )

            if not self._config.condition_evaluator(value, self._context):
                attempt.failure = self._failure(
                    FailureKind.CONDITION_VALUE, run.trigger, name,
                )
                if has_next:
                    self._log(
                        "condition_rejected",
                        trigger=run.trigger,
                        condition=name,
                        action="next_transition",
                    )
                    return False
                return self._fail(
                    run,
                    attempt.failure,
                    f"Condition {name} false. Transition aborted.",
                )

            condition.success = True

        return True

    def _run_effects(
        self,
        run: _Run,
        attempt: TransitionAttempt,
        transition: Transition,
        props: dict[str, Any],
    ) -> Optional[TransitionResult]:
        """Invoke a candidate's effects; returns the failed result if one breaks."""
        for name in transition.effects:
            effect = self._config.resolver(self._context, name)
            effect_attempt = EffectAttempt(name=name, context=self._copy())
            attempt.effects.append(effect_attempt)

            if not callable(effect):
                attempt.failure = self._failure(
                    FailureKind.EFFECT_UNDEFINED, run.trigger, name, undefined=True,
                )
                return self._fail(
                    run,
                    attempt.failure,
                    f"Effect {name} is not defined in the machine.",
                )

            try:
                effect(**props)
            except Exception as e:
                attempt.failure = self._failure(
                    FailureKind.EFFECT_ERROR, run.trigger, name,
                )
                return self._fail(
                    run,
                    attempt.failure,
                    f"Effect {name} caused an error: {e}",
                    cause=e,
                )

            effect_attempt.success = True

        return None

    def _failure(
        self,
        kind: FailureKind,
        trigger: str,
        method: Optional[str] = None,
        undefined: bool = False,
    ) -> TransitionFailure:
        return TransitionFailure(
            kind=kind,
            undefined=undefined,
            trigger=trigger,
            method=method,
            context=self._copy(),
        )

    def _build_result(
        self,
        run: _Run,
        success: bool,
        failure: Optional[TransitionFailure] = None,
    ) -> TransitionResult:
        return TransitionResult(
            success=success,
            failure=failure,
            initial=run.initial,
            current=self._get_state(),
            attempts=run.attempts,
            precontext=run.precontext,
            context=failure.context if failure else self._copy(),
        )

    def _record(self, result: TransitionResult) -> None:
        if self._config.track_history:
            self.history.append(result)

    def _fail(
        self,
        run: _Run,
        failure: TransitionFailure,
        message: str,
        cause: Optional[BaseException] = None,
    ) -> TransitionResult:
        result = self._build_result(run, success=False, failure=failure)
        self._record(result)

        self._log(
            "transition_failed",
            trigger=run.trigger,
            kind=failure.kind.value,
            method=failure.method,
            state=result.current,
            message=message,
        )

        # The state has not changed; on_error gets the snapshots so the
        # caller can roll back whatever the effects did to the context.
        if failure.kind is FailureKind.EFFECT_ERROR and run.on_error is not None:
            run.on_error(result.context, result.precontext)

        if run.throw:
            raise TransitionError(failure.kind, message, result) from cause

        return result

    def _condition_satisfied(self, name: str) -> bool:
        value = self._config.resolver(self._context, name)
        if value is MISSING:
            self._logger.error(
                "condition_check_failed",
                condition=name,
                error=f'Condition "{name}" is not defined.',
            )
            return False

        try:
            return bool(self._config.condition_evaluator(value, self._context))
        except Exception as e:
            self._logger.error(
                "condition_check_failed",
                condition=name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    @property
    def potential_transitions(self) -> list[AvailableTransition]:
        """
        Candidates whose origins include the current state.

        Each entry reports the current truthiness of every condition.
        Effects are not run and the state is not touched.
        """
        current = self._get_state()
        available: list[AvailableTransition] = []

        for trigger, candidates in self._instructions:
            for transition in candidates:
                if not transition.allows(current):
                    continue

                conditions = tuple(
                    ConditionStatus(name=name, satisfied=self._condition_satisfied(name))
                    for name in transition.conditions
                )
                available.append(AvailableTransition(
                    trigger=trigger,
                    origins=transition.origins,
                    destination=transition.destination,
                    satisfied=all(c.satisfied for c in conditions),
                    conditions=conditions,
                    effects=transition.effects,
                ))

        return available

    @property
    def validated_transitions(self) -> list[AvailableTransition]:
        """Potential transitions whose conditions are all satisfied."""
        return [t for t in self.potential_transitions if t.satisfied]

    def can(self, trigger: str) -> bool:
        """Check whether a trigger currently has a satisfied candidate."""
        return any(t.trigger == trigger for t in self.validated_transitions)

    def __repr__(self) -> str:
        return (
            f"StateMachine(state={self._config.get_state(self._context, self._config.key)!r}, "
            f"states={list(self.states)!r})"
        )
