"""
Workload Model Graph

In-memory representation of a workload model: the session-layer EFSM of
application states (one per service), the protocol-layer EFSM nested in each
application state, and the behavior mix of Markov behavior models.

States are compared by identity (eq=False) so that visited-sets and node
maps of the lowering passes key on the state object itself.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


@dataclass(eq=False)
class Service:
    """Named node a synthetic user can be "in" (one per application state)"""
    name: str


class ParameterType(Enum):
    BOOLEAN = 'boolean'
    INTEGER = 'integer'


@dataclass(eq=False)
class GuardActionParameter:
    """Typed session variable referenced by guards and actions"""
    name: str
    parameter_type: ParameterType = ParameterType.BOOLEAN
    initial_value: str = ''  # empty: "false" for booleans, "0" for integers
    source_name: str = ''  # service whose outgoing transitions decrement an integer
    target_name: str = ''  # service whose incoming transitions increment an integer

    def get_initial_value(self) -> str:
        if self.initial_value:
            return self.initial_value
        return 'false' if self.parameter_type is ParameterType.BOOLEAN else '0'


@dataclass(eq=False)
class Guard:
    parameter: GuardActionParameter
    negate: bool = False


@dataclass(eq=False)
class Action:
    parameter: GuardActionParameter


# ----------------------------------------------------------------------------
# Protocol layer
# ----------------------------------------------------------------------------

@dataclass(eq=False)
class Property:
    key: str
    value: str = ''


@dataclass(eq=False)
class Parameter:
    name: str
    value: str = ''


@dataclass(eq=False)
class Assertion:
    pattern_to_test: str


@dataclass(eq=False)
class Request:
    """Base of all request variants"""
    eid: str
    properties: List[Property] = field(default_factory=list)
    parameters: List[Parameter] = field(default_factory=list)
    assertions: List[Assertion] = field(default_factory=list)


@dataclass(eq=False)
class HTTPRequest(Request):
    pass


@dataclass(eq=False)
class JavaRequest(Request):
    """RPC-style request executed by a Java sampler class"""


@dataclass(eq=False)
class BeanShellRequest(Request):
    """Script-based request"""


@dataclass(eq=False)
class JUnitRequest(Request):
    """Unit-test-style request"""


@dataclass(eq=False)
class SOAPRequest(Request):
    """XML-RPC-style request"""


@dataclass(eq=False)
class ProtocolExitState:
    eid: str


@dataclass(eq=False)
class ProtocolTransition:
    target: Union['ProtocolState', ProtocolExitState, None] = None


@dataclass(eq=False)
class ProtocolState:
    eid: str
    request: Optional[Request] = None
    outgoing_transitions: List[ProtocolTransition] = field(default_factory=list)


@dataclass(eq=False)
class ProtocolLayerEFSM:
    initial_state: Optional[ProtocolState] = None
    protocol_states: List[ProtocolState] = field(default_factory=list)
    exit_state: Optional[ProtocolExitState] = None


# ----------------------------------------------------------------------------
# Session layer
# ----------------------------------------------------------------------------

@dataclass(eq=False)
class ApplicationExitState:
    eid: str


@dataclass(eq=False)
class ApplicationTransition:
    source: Optional['ApplicationState'] = None
    target: Union['ApplicationState', ApplicationExitState, None] = None
    guards: List[Guard] = field(default_factory=list)
    actions: List[Action] = field(default_factory=list)


@dataclass(eq=False)
class ApplicationState:
    """Session-layer state: one visited service and its request sequence"""
    eid: str
    service: Service
    protocol_details: ProtocolLayerEFSM = field(default_factory=ProtocolLayerEFSM)
    outgoing_transitions: List[ApplicationTransition] = field(default_factory=list)


@dataclass(eq=False)
class SessionLayerEFSM:
    initial_state: Optional[ApplicationState] = None
    application_states: List[ApplicationState] = field(default_factory=list)
    exit_state: Optional[ApplicationExitState] = None


# ----------------------------------------------------------------------------
# Behavior models
# ----------------------------------------------------------------------------

@dataclass(eq=False)
class ThinkTime:
    """Base of all think time variants"""


@dataclass(eq=False)
class NormallyDistributedThinkTime(ThinkTime):
    mean: float = 0.0
    deviation: float = 0.0


@dataclass(eq=False)
class BehaviorModelExitState:
    eid: str


@dataclass(eq=False)
class Transition:
    target: Union['MarkovState', BehaviorModelExitState, None] = None
    probability: float = 0.0
    think_time: Optional[ThinkTime] = None


@dataclass(eq=False)
class MarkovState:
    eid: str
    service: Service
    outgoing_transitions: List[Transition] = field(default_factory=list)


@dataclass(eq=False)
class BehaviorModel:
    name: str
    filename: str
    initial_state: Optional[MarkovState] = None
    markov_states: List[MarkovState] = field(default_factory=list)
    exit_state: Optional[BehaviorModelExitState] = None


@dataclass(eq=False)
class RelativeFrequency:
    behavior_model: BehaviorModel
    value: float = 1.0  # weight, frequencies of a mix need not sum to 1


@dataclass(eq=False)
class BehaviorMix:
    relative_frequencies: List[RelativeFrequency] = field(default_factory=list)


# ----------------------------------------------------------------------------
# Workload model root
# ----------------------------------------------------------------------------

@dataclass(eq=False)
class WorkloadIntensity:
    formula: str = '1'
    intensity_type: str = 'constant'


@dataclass(eq=False)
class ApplicationModel:
    session_layer_efsm: SessionLayerEFSM = field(default_factory=SessionLayerEFSM)


@dataclass(eq=False)
class WorkloadModel:
    """Root of a loaded workload model"""
    workload_intensity: WorkloadIntensity = field(default_factory=WorkloadIntensity)
    application_model: ApplicationModel = field(default_factory=ApplicationModel)
    behavior_mix: BehaviorMix = field(default_factory=BehaviorMix)
    services: List[Service] = field(default_factory=list)
    behavior_models: List[BehaviorModel] = field(default_factory=list)
    guard_action_parameters: List[GuardActionParameter] = field(default_factory=list)

    @property
    def session_layer_efsm(self) -> SessionLayerEFSM:
        return self.application_model.session_layer_efsm
