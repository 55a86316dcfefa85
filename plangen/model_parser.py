#!/usr/bin/env python3
"""
Workload Model Parser

Parses XML workload model files and builds the in-memory model graph used
by the lowering passes. Element names are matched by local name, so the
document may or may not use a namespace.
"""

import math
from typing import Dict

from lxml import etree

from plangen.errors import ModelParseError
from plangen.model import (
    Action,
    ApplicationExitState,
    ApplicationState,
    ApplicationTransition,
    Assertion,
    BeanShellRequest,
    BehaviorModel,
    BehaviorModelExitState,
    Guard,
    GuardActionParameter,
    HTTPRequest,
    JavaRequest,
    JUnitRequest,
    MarkovState,
    NormallyDistributedThinkTime,
    Parameter,
    ParameterType,
    Property,
    ProtocolExitState,
    ProtocolLayerEFSM,
    ProtocolState,
    ProtocolTransition,
    RelativeFrequency,
    SOAPRequest,
    Service,
    SessionLayerEFSM,
    Transition,
    WorkloadIntensity,
    WorkloadModel,
)


def local_name(elem):
    """Local name of an element, None for comments and processing instructions"""
    if not isinstance(elem.tag, str):
        return None
    return etree.QName(elem).localname


def find_child(elem, tag):
    """Find first direct child element with the given local name"""
    for child in elem:
        if local_name(child) == tag:
            return child
    return None


def find_children(elem, tag):
    """Find all direct child elements with the given local name"""
    return [child for child in elem if local_name(child) == tag]


def parse_bool(value, default=False):
    if value is None or value == '':
        return default
    value = value.strip().lower()
    if value in ('true', '1', 'yes'):
        return True
    if value in ('false', '0', 'no'):
        return False
    raise ModelParseError(f"Invalid boolean value: {value!r}")


class WorkloadModelParser:
    """
    XML workload model parser

    Reads services, guard/action parameters, the session-layer EFSM with its
    nested protocol-layer EFSMs, behavior models and the behavior mix.
    References (transition targets, services, parameters, behavior models)
    are resolved by id after all candidates are known, so forward
    references are allowed.
    """

    REQUEST_TYPES = {
        'http': HTTPRequest,
        'java': JavaRequest,
        'beanshell': BeanShellRequest,
        'junit': JUnitRequest,
        'soap': SOAPRequest,
    }

    THINK_TIME_TYPES = {
        'normal': NormallyDistributedThinkTime,
    }

    def __init__(self):
        self.model = None
        self.source = None
        self.services: Dict[str, Service] = {}
        self.parameters: Dict[str, GuardActionParameter] = {}

    def parse_file(self, model_path: str) -> WorkloadModel:
        """
        Parse workload model file and return model

        Args:
            model_path: Path to XML workload model file

        Returns:
            WorkloadModel with resolved references

        Raises:
            OSError: the file cannot be read
            ModelParseError: the document is malformed
        """
        self.source = str(model_path)
        try:
            tree = etree.parse(str(model_path))
        except etree.XMLSyntaxError as e:
            raise ModelParseError(f"{model_path}: {e}") from e
        return self._parse_root(tree.getroot())

    def parse_string(self, text: str) -> WorkloadModel:
        self.source = '<string>'
        try:
            root = etree.fromstring(text.encode('utf-8'))
        except etree.XMLSyntaxError as e:
            raise ModelParseError(str(e)) from e
        return self._parse_root(root)

    def _error(self, elem, message):
        line = getattr(elem, 'sourceline', None)
        location = f"{self.source}:{line}" if line else self.source
        return ModelParseError(f"{location}: {message}")

    def _require(self, elem, attribute):
        value = elem.get(attribute)
        if value is None or value == '':
            raise self._error(elem, f"<{local_name(elem)}> requires attribute '{attribute}'")
        return value

    def _parse_root(self, root) -> WorkloadModel:
        if local_name(root) != 'workloadModel':
            raise self._error(root, f"Expected <workloadModel> root element, found <{local_name(root)}>")

        self.model = WorkloadModel()
        self.services = {}
        self.parameters = {}

        self._parse_workload_intensity(root)
        self._parse_services(root)
        self._parse_parameters(root)

        application_model = find_child(root, 'applicationModel')
        # sessionLayerEFSM may sit directly below the root or inside <applicationModel>
        container = application_model if application_model is not None else root
        session_elem = find_child(container, 'sessionLayerEFSM')
        if session_elem is None:
            raise self._error(root, "Missing <sessionLayerEFSM> element")
        self.model.application_model.session_layer_efsm = self._parse_session_layer(session_elem)

        behavior_models = self._parse_behavior_models(root)
        self._parse_behavior_mix(root, behavior_models)

        return self.model

    def _parse_workload_intensity(self, root):
        elem = find_child(root, 'workloadIntensity')
        if elem is None:
            return
        self.model.workload_intensity = WorkloadIntensity(
            formula=elem.get('formula', '1'),
            intensity_type=elem.get('type', 'constant'),
        )

    def _parse_services(self, root):
        services_elem = find_child(root, 'services')
        if services_elem is None:
            return
        for elem in find_children(services_elem, 'service'):
            name = self._require(elem, 'name')
            if name in self.services:
                raise self._error(elem, f"Duplicate service '{name}'")
            service = Service(name=name)
            self.services[name] = service
            self.model.services.append(service)

    def _get_service(self, elem, name):
        service = self.services.get(name)
        if service is None:
            # services may be declared implicitly by the states using them
            service = Service(name=name)
            self.services[name] = service
            self.model.services.append(service)
        return service

    def _parse_parameters(self, root):
        params_elem = find_child(root, 'guardActionParameters')
        if params_elem is None:
            return
        for elem in find_children(params_elem, 'parameter'):
            name = self._require(elem, 'name')
            type_name = elem.get('type', 'boolean').lower()
            try:
                parameter_type = ParameterType(type_name)
            except ValueError:
                raise self._error(elem, f"Unknown parameter type '{type_name}' for '{name}'")

            parameter = GuardActionParameter(
                name=name,
                parameter_type=parameter_type,
                initial_value=elem.get('initialValue', ''),
                source_name=elem.get('sourceName', ''),
                target_name=elem.get('targetName', ''),
            )
            self.parameters[name] = parameter
            self.model.guard_action_parameters.append(parameter)

    def _get_parameter(self, elem):
        name = self._require(elem, 'parameter')
        parameter = self.parameters.get(name)
        if parameter is None:
            raise self._error(elem, f"Undeclared guard/action parameter '{name}'")
        return parameter

    # ------------------------------------------------------------------
    # Session layer
    # ------------------------------------------------------------------

    def _parse_session_layer(self, session_elem) -> SessionLayerEFSM:
        efsm = SessionLayerEFSM()
        states: Dict[str, ApplicationState] = {}
        state_elems = find_children(session_elem, 'applicationState')

        # 1st pass: states, so transitions can reference any of them
        for elem in state_elems:
            eid = self._require(elem, 'eId')
            if eid in states:
                raise self._error(elem, f"Duplicate application state '{eid}'")
            service = self._get_service(elem, self._require(elem, 'service'))
            state = ApplicationState(eid=eid, service=service)
            states[eid] = state
            efsm.application_states.append(state)

        exit_elem = find_child(session_elem, 'applicationExitState')
        if exit_elem is not None:
            efsm.exit_state = ApplicationExitState(eid=self._require(exit_elem, 'eId'))

        # 2nd pass: protocol details and transitions
        for elem in state_elems:
            state = states[elem.get('eId')]

            protocol_elem = find_child(elem, 'protocolLayerEFSM')
            if protocol_elem is not None:
                state.protocol_details = self._parse_protocol_layer(protocol_elem)

            for trans_elem in find_children(elem, 'applicationTransition'):
                state.outgoing_transitions.append(
                    self._parse_application_transition(trans_elem, state, states, efsm.exit_state))

        # If no initial attribute, default to first state in document order
        initial = session_elem.get('initialState', '')
        if initial:
            if initial not in states:
                raise self._error(session_elem, f"Initial state '{initial}' not found")
            efsm.initial_state = states[initial]
        elif efsm.application_states:
            efsm.initial_state = efsm.application_states[0]

        return efsm

    def _parse_application_transition(self, elem, source, states, exit_state) -> ApplicationTransition:
        target_id = self._require(elem, 'target')
        if target_id in states:
            target = states[target_id]
        elif exit_state is not None and target_id == exit_state.eid:
            target = exit_state
        else:
            raise self._error(elem, f"Unknown transition target '{target_id}'")

        transition = ApplicationTransition(source=source, target=target)
        for guard_elem in find_children(elem, 'guard'):
            transition.guards.append(Guard(
                parameter=self._get_parameter(guard_elem),
                negate=parse_bool(guard_elem.get('negate'), False),
            ))
        for action_elem in find_children(elem, 'action'):
            transition.actions.append(Action(parameter=self._get_parameter(action_elem)))
        return transition

    # ------------------------------------------------------------------
    # Protocol layer
    # ------------------------------------------------------------------

    def _parse_protocol_layer(self, protocol_elem) -> ProtocolLayerEFSM:
        efsm = ProtocolLayerEFSM()
        states: Dict[str, ProtocolState] = {}
        state_elems = find_children(protocol_elem, 'protocolState')

        for elem in state_elems:
            eid = self._require(elem, 'eId')
            if eid in states:
                raise self._error(elem, f"Duplicate protocol state '{eid}'")
            request_elem = find_child(elem, 'request')
            if request_elem is None:
                raise self._error(elem, f"Protocol state '{eid}' has no <request>")
            state = ProtocolState(eid=eid, request=self._parse_request(request_elem))
            states[eid] = state
            efsm.protocol_states.append(state)

        exit_elem = find_child(protocol_elem, 'protocolExitState')
        if exit_elem is not None:
            efsm.exit_state = ProtocolExitState(eid=self._require(exit_elem, 'eId'))

        for elem in state_elems:
            state = states[elem.get('eId')]
            for trans_elem in find_children(elem, 'protocolTransition'):
                target_id = self._require(trans_elem, 'target')
                if target_id in states:
                    target = states[target_id]
                elif efsm.exit_state is not None and target_id == efsm.exit_state.eid:
                    target = efsm.exit_state
                else:
                    raise self._error(trans_elem, f"Unknown protocol transition target '{target_id}'")
                state.outgoing_transitions.append(ProtocolTransition(target=target))

        initial = protocol_elem.get('initialState', '')
        if initial:
            if initial not in states:
                raise self._error(protocol_elem, f"Initial protocol state '{initial}' not found")
            efsm.initial_state = states[initial]
        elif efsm.protocol_states:
            efsm.initial_state = efsm.protocol_states[0]

        return efsm

    def _parse_request(self, elem):
        eid = self._require(elem, 'eId')
        type_name = elem.get('type', 'http').lower()
        request_class = self.REQUEST_TYPES.get(type_name)
        if request_class is None:
            raise self._error(elem, f"Unknown request type '{type_name}' for request '{eid}'")

        request = request_class(eid=eid)
        for prop in find_children(elem, 'property'):
            request.properties.append(Property(key=self._require(prop, 'key'), value=prop.get('value', '')))
        for param in find_children(elem, 'parameter'):
            request.parameters.append(Parameter(name=self._require(param, 'name'), value=param.get('value', '')))
        for assertion in find_children(elem, 'assertion'):
            request.assertions.append(Assertion(pattern_to_test=self._require(assertion, 'patternToTest')))
        return request

    # ------------------------------------------------------------------
    # Behavior models
    # ------------------------------------------------------------------

    def _parse_behavior_models(self, root) -> Dict[str, BehaviorModel]:
        behavior_models: Dict[str, BehaviorModel] = {}
        models_elem = find_child(root, 'behaviorModels')
        if models_elem is None:
            return behavior_models

        for elem in find_children(models_elem, 'behaviorModel'):
            name = self._require(elem, 'name')
            if name in behavior_models:
                raise self._error(elem, f"Duplicate behavior model '{name}'")
            behavior_model = self._parse_behavior_model(elem, name)
            behavior_models[name] = behavior_model
            self.model.behavior_models.append(behavior_model)

        return behavior_models

    def _parse_behavior_model(self, elem, name) -> BehaviorModel:
        behavior_model = BehaviorModel(name=name, filename=elem.get('filename') or f"{name}.csv")
        states: Dict[str, MarkovState] = {}
        state_elems = find_children(elem, 'markovState')

        for state_elem in state_elems:
            eid = self._require(state_elem, 'eId')
            if eid in states:
                raise self._error(state_elem, f"Duplicate Markov state '{eid}'")
            service = self._get_service(state_elem, self._require(state_elem, 'service'))
            state = MarkovState(eid=eid, service=service)
            states[eid] = state
            behavior_model.markov_states.append(state)

        exit_elem = find_child(elem, 'behaviorModelExitState')
        if exit_elem is not None:
            behavior_model.exit_state = BehaviorModelExitState(eid=self._require(exit_elem, 'eId'))

        for state_elem in state_elems:
            state = states[state_elem.get('eId')]
            for trans_elem in find_children(state_elem, 'transition'):
                state.outgoing_transitions.append(
                    self._parse_markov_transition(trans_elem, states, behavior_model.exit_state))

        initial = elem.get('initialState', '')
        if initial:
            if initial not in states:
                raise self._error(elem, f"Initial Markov state '{initial}' not found")
            behavior_model.initial_state = states[initial]
        elif behavior_model.markov_states:
            behavior_model.initial_state = behavior_model.markov_states[0]

        return behavior_model

    def _parse_markov_transition(self, elem, states, exit_state) -> Transition:
        target_id = self._require(elem, 'target')
        if target_id in states:
            target = states[target_id]
        elif exit_state is not None and target_id == exit_state.eid:
            target = exit_state
        else:
            raise self._error(elem, f"Unknown Markov transition target '{target_id}'")

        try:
            probability = float(elem.get('probability', '0'))
        except ValueError:
            raise self._error(elem, f"Invalid probability {elem.get('probability')!r}")
        if not math.isfinite(probability):
            raise self._error(elem, f"Invalid probability {elem.get('probability')!r}")

        return Transition(target=target, probability=probability, think_time=self._parse_think_time(elem))

    def _parse_think_time(self, trans_elem):
        elem = find_child(trans_elem, 'thinkTime')
        if elem is None:
            # no think time: zero delay
            return NormallyDistributedThinkTime()
        type_name = elem.get('type', 'normal').lower()
        think_time_class = self.THINK_TIME_TYPES.get(type_name)
        if think_time_class is None:
            raise self._error(elem, f"Unknown think time type '{type_name}'")
        try:
            return think_time_class(mean=float(elem.get('mean', '0')), deviation=float(elem.get('deviation', '0')))
        except ValueError:
            raise self._error(elem, "Think time mean and deviation must be numbers")

    def _parse_behavior_mix(self, root, behavior_models):
        mix_elem = find_child(root, 'behaviorMix')
        if mix_elem is None:
            return
        for elem in find_children(mix_elem, 'relativeFrequency'):
            name = self._require(elem, 'behaviorModel')
            behavior_model = behavior_models.get(name)
            if behavior_model is None:
                raise self._error(elem, f"Unknown behavior model '{name}'")
            try:
                value = float(elem.get('value', '1.0'))
            except ValueError:
                raise self._error(elem, f"Invalid relative frequency {elem.get('value')!r}")
            self.model.behavior_mix.relative_frequencies.append(
                RelativeFrequency(behavior_model=behavior_model, value=value))


def parse_workload_model(model_path) -> WorkloadModel:
    return WorkloadModelParser().parse_file(model_path)
