"""
Protocol Layer EFSM Lowering

Turns the protocol-layer EFSM of one application state into an ordered
sequence of request nodes.
"""

import logging
from typing import Dict, List, Optional, Set, Type

from plangen.errors import UnknownRequestTypeError
from plangen.model import ProtocolLayerEFSM, ProtocolState, Request
from plangen.plan import RequestNode
from plangen.requests import AbstractRequestTransformer, default_request_transformers

logger = logging.getLogger(__name__)

WARNING_AMBIGUOUS_TRANSITIONS = (
    'Protocol State for "%s" has more than one outgoing transitions; '
    'will continue with first target state.'
)


class AbstractProtocolLayerTransformer:
    """
    Base of protocol layer lowering strategies

    Holds the request transformer registry and dispatches each request on
    its concrete class.
    """

    def __init__(self, request_transformers: Optional[Dict[Type[Request], AbstractRequestTransformer]] = None):
        if request_transformers is None:
            request_transformers = default_request_transformers()
        self.request_transformers = request_transformers

    def transform(self, protocol_efsm: ProtocolLayerEFSM) -> List[RequestNode]:
        if protocol_efsm is None or protocol_efsm.initial_state is None:
            return []
        visited: Set[ProtocolState] = set()
        return self.transform_protocol_state(protocol_efsm.initial_state, visited)

    def transform_request(self, request: Request) -> RequestNode:
        transformer = self.request_transformers.get(type(request))
        if transformer is None:
            raise UnknownRequestTypeError(request.eid, type(request))
        return transformer.transform(request)

    def transform_protocol_state(self, state: ProtocolState, visited: Set[ProtocolState]) -> List[RequestNode]:
        raise NotImplementedError


class SimpleProtocolLayerTransformer(AbstractProtocolLayerTransformer):
    """
    Linear lowering strategy

    Requests are issued in sequence. A protocol state with several outgoing
    transitions is a violation of this strategy: a warning is logged and the
    first transition in declaration order is followed.
    """

    def transform_protocol_state(self, state, visited):
        nodes = []

        while state is not None:
            request = state.request
            if request is None:
                # reported under the protocol state id
                raise UnknownRequestTypeError(state.eid, type(None))
            nodes.append(self.transform_request(request))

            # mark current state as visited
            visited.add(state)

            transitions = state.outgoing_transitions
            if not transitions:
                break

            if len(transitions) > 1:
                logger.warning(WARNING_AMBIGUOUS_TRANSITIONS, request.eid)

            target = transitions[0].target

            # exit states end the sequence, visited states close a cycle
            if isinstance(target, ProtocolState) and target not in visited:
                state = target
            else:
                state = None

        return nodes
