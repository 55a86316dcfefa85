"""
Execution Plan Tree

Output of the lowering passes. Session nodes form an arena: a node's id is
its index in the owning list, and transition entries refer to targets by id.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple


@dataclass
class AssertionNode:
    """Response assertion; a response passes if it contains every test string"""
    name: str = 'Response Assertion'
    test_strings: List[str] = field(default_factory=list)


@dataclass
class RequestNode:
    """One sampler issued while the session is in a service"""
    name: str  # request id
    kind: str  # sampler kind: http, java, beanshell, junit, soap
    properties: Dict[str, str] = field(default_factory=dict)
    arguments: List[Tuple[str, str]] = field(default_factory=list)
    assertion: Optional[AssertionNode] = None


@dataclass
class TransitionEntry:
    target_id: int
    guard: str = ''
    action: str = ''
    disabled: bool = False


@dataclass
class SessionNode:
    """Markov state of the session controller, named after its service"""
    id: int
    name: str
    transitions: List[TransitionEntry] = field(default_factory=list)
    requests: List[RequestNode] = field(default_factory=list)

    def find_transition(self, target_id: int) -> Optional[TransitionEntry]:
        for entry in self.transitions:
            if entry.target_id == target_id:
                return entry
        return None  # no match

    def enabled_transitions(self) -> List[TransitionEntry]:
        return [t for t in self.transitions if not t.disabled]


@dataclass
class BehaviorMixEntry:
    name: str
    relative_frequency: float
    filename: str  # absolute path of the matrix file


@dataclass
class MarkovControllerNode:
    name: str = 'Markov Session Controller'
    arrival_enabled: bool = False
    arrival_formula: str = ''
    arrival_logging_enabled: bool = False
    arrival_log_file: str = ''
    session_nodes: List[SessionNode] = field(default_factory=list)
    behavior_mix: List[BehaviorMixEntry] = field(default_factory=list)


@dataclass
class ThreadGroupNode:
    name: str = 'Setup Thread Group'
    num_threads: int = 1
    ramp_up: int = 1
    loops: int = 1
    forever: bool = False
    on_sample_error: str = 'continue'


@dataclass
class UserParameter:
    name: str
    value: str


@dataclass
class ExecutionPlan:
    """Root of the execution plan tree"""
    name: str = 'Test Plan'
    comment: str = ''
    thread_group: ThreadGroupNode = field(default_factory=ThreadGroupNode)
    user_parameters: List[UserParameter] = field(default_factory=list)
    markov_controller: MarkovControllerNode = field(default_factory=MarkovControllerNode)
    behavior_mix_report: Optional[object] = None

    @property
    def session_nodes(self) -> List[SessionNode]:
        return self.markov_controller.session_nodes

    def iter_nodes(self) -> Iterator[object]:
        """Yield every node of the tree in document order"""
        yield self
        yield self.thread_group
        yield from self.user_parameters
        yield self.markov_controller
        for session_node in self.markov_controller.session_nodes:
            yield session_node
            for request in session_node.requests:
                yield request
                if request.assertion is not None:
                    yield request.assertion
