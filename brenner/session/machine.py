"""
Session state machine.

SessionMachine validates every intent against the current phase and the
engine policy, then records the change as a SessionCommand so it can be
undone. Read operations never touch history.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from ..artifact.merge import MergeResult
from ..artifact.merge import merge_contribution as merge_artifact
from ..artifact.model import ARTIFACT_STATUSES, create_empty_artifact
from ..config import EnginePolicy
from ..domains import is_known_domain
from ..errors import InvalidStateError, InvalidTransitionError, PhaseGateError
from ..events import (
    COMMAND_EXECUTED,
    COMMAND_REDONE,
    COMMAND_UNDONE,
    INTEGRITY_CHECKED,
    SESSION_CREATED,
    create_event,
)
from ..history.commands import (
    CommandType,
    SessionCommand,
    capture,
    ensure_json_value,
    map_entry_patch,
    prediction_patch,
)
from ..ledger import SessionLedger
from ..lock import prediction as lock
from ..lock.prediction import PREDICTION_TYPES, LockedPrediction, LockStats
from ..util import Clock, IdGenerator, SystemClock, UlidGenerator, isoformat
from .model import Session
from .phases import (
    COMPLETION_PHASES,
    SessionPhase,
    SessionStatus,
    later_phase,
    next_phase,
    phase_index,
    phase_name,
    previous_phase,
)

logger = logging.getLogger(__name__)

PHASE_FIELDS = ["phase", "max_phase_reached", "updated_at"]


class SessionMachine:
    def __init__(
        self,
        session: Session,
        *,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        policy: EnginePolicy | None = None,
        ledger: SessionLedger | None = None,
        actor: str = "system",
    ):
        self.session = session
        self.clock = clock or SystemClock(floor=session.updated_at)
        self.ids = ids or UlidGenerator()
        self.policy = policy or EnginePolicy()
        self.ledger = ledger
        self.actor = actor
        self.last_merge: MergeResult | None = None
        session.history.max_history = self.policy.max_history

    # -------------------------------------------------------------------------
    # Gates
    # -------------------------------------------------------------------------

    def gate_failure(self, phase: SessionPhase | None = None) -> str | None:
        """Unmet exit criterion for leaving `phase` (default: current), or None."""
        phase = phase or self.session.phase
        hypothesis = self.session.hypothesis.strip()

        if phase == SessionPhase.INTAKE and not hypothesis:
            return "a non-blank hypothesis is required"
        if phase == SessionPhase.SHARPENING and len(hypothesis) < self.policy.min_hypothesis_length:
            return f"hypothesis must be at least {self.policy.min_hypothesis_length} characters"
        if phase == SessionPhase.SYNTHESIS:
            if not self.session.artifact.hypotheses:
                return "at least one hypothesis in the artifact slate is required"
            if self.policy.require_locked_predictions and not any(p.is_sealed for p in self.session.predictions):
                return "at least one locked prediction is required"
        if phase == SessionPhase.REVISION:
            return self.completion_failure()
        return None

    def completion_failure(self) -> str | None:
        artifact = self.session.artifact
        if not artifact.hypotheses:
            return "at least one hypothesis is required"
        if not artifact.tests:
            return "at least one discriminative test is required"
        if self.policy.require_locked_predictions:
            drafts = [p.id for p in self.session.predictions if p.state == "draft"]
            if drafts:
                return f"draft predictions must be locked first: {', '.join(drafts)}"
        return None

    def can_advance(self) -> bool:
        return not self.session.is_terminal and self.gate_failure() is None

    def _require_active(self, action: str) -> None:
        if self.session.status == SessionStatus.ABANDONED:
            raise InvalidTransitionError(f"Cannot {action}: session is abandoned")
        if self.session.is_terminal:
            raise InvalidTransitionError(f"Cannot {action}: session is complete")

    # -------------------------------------------------------------------------
    # Phase transitions
    # -------------------------------------------------------------------------

    def advance(self) -> SessionCommand:
        self._require_active("advance")
        current = self.session.phase
        failure = self.gate_failure(current)
        if failure:
            raise PhaseGateError(current.value, failure)
        if current == SessionPhase.REVISION:
            return self.complete()

        target = next_phase(current)
        return self._move(CommandType.PHASE_ADVANCE, target, f"Advance to {phase_name(target)}")

    def retreat(self) -> SessionCommand | None:
        self._require_active("go back")
        target = previous_phase(self.session.phase)
        if target is None:
            return None
        return self._move(CommandType.PHASE_RETREAT, target, f"Back to {phase_name(target)}")

    def go_to_step(self, phase: SessionPhase | str) -> SessionCommand | None:
        target = SessionPhase(phase)
        self._require_active("change phase")
        if target == SessionPhase.COMPLETE:
            raise InvalidTransitionError("Use complete() to finish a session")
        if phase_index(target) > phase_index(self.session.max_phase_reached):
            raise InvalidTransitionError(f"Phase {target.value} has not been reached yet")
        if target == self.session.phase:
            return None
        return self._move(CommandType.PHASE_JUMP, target, f"Jump to {phase_name(target)}")

    def _move(self, command_type: CommandType, target: SessionPhase, description: str) -> SessionCommand:
        now = self.clock.now()
        inverse = capture(self.session, PHASE_FIELDS)
        forward = {
            "phase": target.value,
            "max_phase_reached": later_phase(self.session.max_phase_reached, target).value,
            "updated_at": isoformat(now),
        }
        return self._execute(command_type, description, forward, inverse, now)

    def complete(self, result: Any = None) -> SessionCommand:
        self._require_active("complete")
        current = self.session.phase
        if current not in COMPLETION_PHASES:
            raise InvalidTransitionError(f"Cannot complete from {current.value}")
        failure = self.completion_failure()
        if failure:
            raise PhaseGateError(current.value, failure)

        now = self.clock.now()
        artifact = self.session.artifact.copy()
        artifact.metadata.status = "completed"
        artifact.metadata.updated_at = max(artifact.metadata.updated_at, now)

        inverse = capture(self.session, [*PHASE_FIELDS, "status", "completed_at", "result"])
        inverse["artifact"] = self.session.artifact.to_dict()
        forward = {
            "phase": SessionPhase.COMPLETE.value,
            "max_phase_reached": SessionPhase.COMPLETE.value,
            "status": SessionStatus.COMPLETED.value,
            "completed_at": isoformat(now),
            "result": ensure_json_value(result),
            "updated_at": isoformat(now),
            "artifact": artifact.to_dict(),
        }
        return self._execute(CommandType.SESSION_COMPLETE, "Complete session", forward, inverse, now)

    def abandon(self) -> SessionCommand:
        self._require_active("abandon")
        now = self.clock.now()
        inverse = capture(self.session, ["status", "abandoned_at", "updated_at"])
        forward = {
            "status": SessionStatus.ABANDONED.value,
            "abandoned_at": isoformat(now),
            "updated_at": isoformat(now),
        }
        return self._execute(CommandType.SESSION_ABANDON, "Abandon session", forward, inverse, now)

    # -------------------------------------------------------------------------
    # Free-form content
    # -------------------------------------------------------------------------

    def set_content(self, key: str, value: Any) -> SessionCommand:
        if key == "hypothesis":
            return self.set_hypothesis(value)
        if key == "confidence":
            return self.set_confidence(value)
        return self._set_entry("content", CommandType.CONTENT_SET, key, value)

    def set_selection(self, key: str, value: Any) -> SessionCommand:
        return self._set_entry("selections", CommandType.SELECTION_SET, key, value)

    def _set_entry(self, field_name: str, command_type: CommandType, key: str, value: Any) -> SessionCommand:
        if not isinstance(key, str) or not key:
            raise ValueError(f"{field_name} key must be a non-empty string")
        value = ensure_json_value(value)
        now = self.clock.now()
        inverse = capture(self.session, ["updated_at"])
        inverse[field_name] = map_entry_patch(getattr(self.session, field_name), key)
        forward = {field_name: {"set": {key: value}}, "updated_at": isoformat(now)}
        return self._execute(command_type, f"Set {field_name} {key}", forward, inverse, now)

    def set_hypothesis(self, text: str) -> SessionCommand:
        if not isinstance(text, str):
            raise ValueError("hypothesis must be a string")
        now = self.clock.now()
        inverse = capture(self.session, ["hypothesis", "updated_at"])
        forward = {"hypothesis": text, "updated_at": isoformat(now)}
        return self._execute(CommandType.HYPOTHESIS_SET, "Update hypothesis", forward, inverse, now)

    def set_confidence(self, value: int) -> SessionCommand:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
            raise ValueError(f"confidence must be an integer between 0 and 100, got {value!r}")
        now = self.clock.now()
        inverse = capture(self.session, ["confidence", "updated_at"])
        forward = {"confidence": value, "updated_at": isoformat(now)}
        return self._execute(CommandType.CONFIDENCE_SET, f"Set confidence to {value}", forward, inverse, now)

    # -------------------------------------------------------------------------
    # Predictions
    # -------------------------------------------------------------------------

    def _prediction(self, prediction_id: str) -> LockedPrediction:
        prediction = self.session.find_prediction(prediction_id)
        if prediction is None:
            raise ValueError(f"Unknown prediction: {prediction_id}")
        return prediction

    def _replace_prediction(
        self,
        command_type: CommandType,
        description: str,
        before: LockedPrediction | None,
        after: LockedPrediction,
        now: datetime,
    ) -> SessionCommand:
        inverse = capture(self.session, ["updated_at"])
        inverse["predictions"] = [prediction_patch(after.id, before)]
        forward = {"predictions": [prediction_patch(after.id, after)], "updated_at": isoformat(now)}
        return self._execute(command_type, description, forward, inverse, now)

    def draft_prediction(self, hypothesis_id: str, prediction_type: str, index: int, text: str) -> SessionCommand:
        if prediction_type not in PREDICTION_TYPES:
            raise ValueError(f"Invalid prediction_type: {prediction_type}")
        if self.session.find_prediction_by_key(hypothesis_id, prediction_type, index) is not None:
            raise InvalidStateError(f"Prediction {hypothesis_id}/{prediction_type}/{index} already exists")
        prediction_id = self.ids.next_id(lock.prediction_lock_prefix(hypothesis_id, prediction_type, index))
        draft = lock.create_draft(hypothesis_id, prediction_type, index, text, prediction_id=prediction_id)
        now = self.clock.now()
        return self._replace_prediction(CommandType.PREDICTION_DRAFT, f"Draft {prediction_id}", None, draft, now)

    def edit_draft(self, prediction_id: str, text: str) -> SessionCommand:
        before = self._prediction(prediction_id)
        after = lock.edit_draft(before, text)
        now = self.clock.now()
        return self._replace_prediction(CommandType.PREDICTION_DRAFT, f"Edit draft {prediction_id}", before, after, now)

    def lock_prediction(
        self,
        hypothesis_id: str,
        prediction_type: str,
        index: int,
        text: str | None = None,
    ) -> SessionCommand:
        """
        Seal the prediction at (hypothesis, type, index).

        An existing draft at that slot is sealed in place (with `text`
        replacing its draft text when given). Otherwise a new prediction is
        created already locked.
        """
        existing = self.session.find_prediction_by_key(hypothesis_id, prediction_type, index)
        if existing is not None and existing.is_sealed:
            raise InvalidStateError(f"Prediction {existing.id} is already {existing.state}")
        if text is None:
            text = existing.original_text if existing is not None else ""

        now = self.clock.now()
        prediction_id = (
            existing.id
            if existing is not None
            else self.ids.next_id(lock.prediction_lock_prefix(hypothesis_id, prediction_type, index))
        )
        sealed = lock.lock_prediction(
            hypothesis_id,
            prediction_type,
            index,
            text,
            timestamp=now,
            prediction_id=prediction_id,
            draft=existing,
        )
        return self._replace_prediction(CommandType.PREDICTION_LOCK, f"Lock {sealed.id}", existing, sealed, now)

    def lock_draft(self, prediction_id: str) -> SessionCommand:
        draft = self._prediction(prediction_id)
        return self.lock_prediction(draft.hypothesis_id, draft.prediction_type, draft.original_index)

    def reveal_prediction(self, prediction_id: str, observed_outcome: str, outcome_match: str) -> SessionCommand:
        before = self._prediction(prediction_id)
        now = self.clock.now()
        after = lock.reveal_prediction(before, observed_outcome, outcome_match, timestamp=now)
        return self._replace_prediction(
            CommandType.PREDICTION_REVEAL, f"Reveal {prediction_id}: {outcome_match}", before, after, now
        )

    def amend_prediction(
        self,
        prediction_id: str,
        amendment_type: str,
        text: str,
        reason: str | None = None,
    ) -> SessionCommand:
        before = self._prediction(prediction_id)
        penalty = self.policy.penalty_for(amendment_type)
        now = self.clock.now()
        after = lock.amend_prediction(before, amendment_type, text, reason, timestamp=now, penalty=penalty)
        return self._replace_prediction(
            CommandType.PREDICTION_AMEND, f"Amend {prediction_id} ({amendment_type})", before, after, now
        )

    def verify_predictions(self) -> dict[str, bool]:
        """Map of prediction id to lock integrity. Never mutates the session."""
        results = {p.id: lock.verify_lock(p) for p in self.session.predictions}
        failed = [pid for pid, ok in results.items() if not ok]
        if failed:
            logger.warning("Session %s: %d prediction(s) failed verification", self.session.id, len(failed))
        self._record(INTEGRITY_CHECKED, {"checked": len(results), "failed": failed})
        return results

    def stats(self) -> LockStats:
        return lock.lock_stats(self.session.predictions)

    # -------------------------------------------------------------------------
    # Artifact
    # -------------------------------------------------------------------------

    def merge_contribution(
        self,
        contribution: Mapping[str, Any],
        agent: str,
        agent_info: Mapping[str, Any] | None = None,
    ) -> SessionCommand:
        """Merge an agent contribution. The MergeResult is kept on `last_merge`."""
        now = self.clock.now()
        result = merge_artifact(self.session.artifact, contribution, agent, timestamp=now, agent_info=agent_info)
        for warning in result.warnings:
            logger.info("Merge from %s: %s", agent, warning.message)
        inverse = capture(self.session, ["updated_at"])
        inverse["artifact"] = self.session.artifact.to_dict()
        forward = {"artifact": result.artifact.to_dict(), "updated_at": isoformat(now)}
        description = f"Merge from {agent} (v{result.version}, {result.applied} applied)"
        command = self._execute(CommandType.ARTIFACT_MERGE, description, forward, inverse, now)
        self.last_merge = result
        return command

    def set_artifact_status(self, status: str) -> SessionCommand:
        if status not in ARTIFACT_STATUSES:
            raise ValueError(f"Invalid artifact status: {status}")
        now = self.clock.now()
        artifact = self.session.artifact.copy()
        artifact.metadata.status = status
        artifact.metadata.updated_at = max(artifact.metadata.updated_at, now)
        inverse = capture(self.session, ["updated_at"])
        inverse["artifact"] = self.session.artifact.to_dict()
        forward = {"artifact": artifact.to_dict(), "updated_at": isoformat(now)}
        return self._execute(CommandType.ARTIFACT_STATUS, f"Set artifact status to {status}", forward, inverse, now)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return self.session.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.session.history.can_redo

    def undo(self) -> SessionCommand | None:
        command = self.session.history.undo(self.session)
        if command is not None:
            self._record(COMMAND_UNDONE, _command_payload(command))
        return command

    def redo(self) -> SessionCommand | None:
        command = self.session.history.redo(self.session)
        if command is not None:
            self._record(COMMAND_REDONE, _command_payload(command))
        return command

    def undo_to_command(self, command_id: str) -> list[SessionCommand]:
        before = self.session.history.cursor
        moved = self.session.history.undo_to_command(self.session, command_id)
        event_type = COMMAND_UNDONE if self.session.history.cursor < before else COMMAND_REDONE
        if moved and self.ledger is not None:
            now = self.clock.now()
            self.ledger.append_many([
                create_event(event_type, self.session.id, self.actor, payload=_command_payload(c), timestamp=now)
                for c in moved
            ])
        return moved

    def _execute(
        self,
        command_type: CommandType,
        description: str,
        forward: dict[str, Any],
        inverse: dict[str, Any],
        now: datetime,
    ) -> SessionCommand:
        command = SessionCommand(
            id=self.ids.next_id("CMD"),
            type=command_type,
            description=description,
            timestamp=now,
            forward=forward,
            inverse=inverse,
        )
        self.session.history.execute(self.session, command)
        self._record(COMMAND_EXECUTED, {**_command_payload(command), "description": description}, now)
        return command

    def _record(self, event_type: str, payload: dict[str, Any], timestamp: datetime | None = None) -> None:
        if self.ledger is None:
            return
        self.ledger.append(
            create_event(
                event_type,
                self.session.id,
                self.actor,
                payload=payload,
                timestamp=timestamp or self.clock.now(),
            )
        )


def _command_payload(command: SessionCommand) -> dict[str, Any]:
    return {"command_id": command.id, "command_type": command.type.value}


def create_session(
    hypothesis: str = "",
    *,
    domain: str | None = None,
    confidence: int | None = None,
    clock: Clock | None = None,
    ids: IdGenerator | None = None,
    policy: EnginePolicy | None = None,
    ledger: SessionLedger | None = None,
    actor: str = "system",
) -> SessionMachine:
    """
    Start a new session at intake.

    Creation is not a command: the initial state is the bottom of the undo
    stack.
    """
    if domain is not None and not is_known_domain(domain):
        raise ValueError(f"Unknown domain: {domain}")
    if confidence is not None and (isinstance(confidence, bool) or not isinstance(confidence, int) or not 0 <= confidence <= 100):
        raise ValueError(f"confidence must be an integer between 0 and 100, got {confidence!r}")

    clock = clock or SystemClock()
    ids = ids or UlidGenerator()
    now = clock.now()
    session_id = ids.next_id("SESSION")
    session = Session(
        id=session_id,
        created_at=now,
        updated_at=now,
        artifact=create_empty_artifact(session_id, timestamp=now),
        hypothesis=hypothesis,
        domain=domain,
    )
    if confidence is not None:
        session.confidence = confidence

    machine = SessionMachine(session, clock=clock, ids=ids, policy=policy, ledger=ledger, actor=actor)
    machine._record(SESSION_CREATED, {"hypothesis": hypothesis, "domain": domain}, now)
    logger.debug("Created session %s", session_id)
    return machine
