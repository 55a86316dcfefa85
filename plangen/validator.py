"""Structural validation of workload models before they are transformed."""

import logging
from dataclasses import dataclass
from typing import List

from plangen.model import ApplicationState, MarkovState, WorkloadModel

logger = logging.getLogger(__name__)

# Tolerance for the outgoing probability sum of a Markov state
PROBABILITY_EPSILON = 1e-9


@dataclass
class Diagnostic:
    path: str
    message: str


class ModelValidator:
    """Collects structural problems of a workload model"""

    def validate(self, model: WorkloadModel) -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        self._check_services(model, diagnostics)
        self._check_session_layer(model, diagnostics)
        self._check_behavior_models(model, diagnostics)
        self._check_behavior_mix(model, diagnostics)
        return diagnostics

    def validate_and_report(self, model: WorkloadModel) -> List[Diagnostic]:
        """Validate and log every diagnostic as an error"""
        diagnostics = self.validate(model)
        for d in diagnostics:
            logger.error('%s: %s', d.path, d.message)
        return diagnostics

    def _check_services(self, model, diagnostics):
        seen = set()
        for service in model.services:
            if service.name in seen:
                diagnostics.append(Diagnostic(f"services/{service.name}", 'duplicate service name'))
            seen.add(service.name)

    def _check_session_layer(self, model, diagnostics):
        efsm = model.session_layer_efsm
        if efsm.initial_state is None:
            diagnostics.append(Diagnostic('sessionLayerEFSM', 'no initial state'))
            return

        services = set(map(id, model.services))
        declared = set(map(id, model.guard_action_parameters))
        owners = {}

        for state in efsm.application_states:
            path = f"sessionLayerEFSM/{state.eid}"
            if id(state.service) not in services:
                diagnostics.append(Diagnostic(path, f"service '{state.service.name}' is not declared"))
            # one matrix row and column per service
            owner = owners.setdefault(id(state.service), state)
            if owner is not state:
                diagnostics.append(Diagnostic(
                    path, f"service '{state.service.name}' is already used by '{owner.eid}'"))

            protocol = state.protocol_details
            if protocol is None or protocol.initial_state is None:
                diagnostics.append(Diagnostic(path, 'protocol layer EFSM has no initial state'))

            for transition in state.outgoing_transitions:
                referenced = [g.parameter for g in transition.guards] + [a.parameter for a in transition.actions]
                for parameter in referenced:
                    if id(parameter) not in declared:
                        diagnostics.append(Diagnostic(path, f"parameter '{parameter.name}' is not declared"))
                if isinstance(transition.target, ApplicationState) and \
                        transition.target not in efsm.application_states:
                    diagnostics.append(Diagnostic(path, f"target '{transition.target.eid}' is not part of the EFSM"))

    def _check_behavior_models(self, model, diagnostics):
        for behavior_model in model.behavior_models:
            base = f"behaviorModels/{behavior_model.name}"
            initial = behavior_model.initial_state
            if initial is None:
                diagnostics.append(Diagnostic(base, 'no initial state'))
            elif not initial.outgoing_transitions:
                diagnostics.append(Diagnostic(base, f"initial state '{initial.eid}' has no outgoing transition"))

            for state in behavior_model.markov_states:
                self._check_markov_state(state, f"{base}/{state.eid}", diagnostics)

    def _check_markov_state(self, state: MarkovState, path, diagnostics):
        total = 0.0
        for transition in state.outgoing_transitions:
            p = transition.probability
            if not 0.0 <= p <= 1.0:
                diagnostics.append(Diagnostic(path, f"probability {p} out of range [0, 1]"))
            total += p
        if total > 1.0 + PROBABILITY_EPSILON:
            diagnostics.append(Diagnostic(path, f"outgoing probabilities sum to {total:g} > 1"))

    def _check_behavior_mix(self, model, diagnostics):
        for frequency in model.behavior_mix.relative_frequencies:
            if frequency.value < 0:
                diagnostics.append(Diagnostic(
                    f"behaviorMix/{frequency.behavior_model.name}",
                    f"negative relative frequency {frequency.value:g}"))
