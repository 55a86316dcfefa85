"""
Session Layer EFSM Lowering

Walks the session-layer EFSM depth-first and creates one session node per
application state. Each node carries the request nodes of its protocol-layer
EFSM and a transition table that is completed afterwards, so that every
node holds exactly one entry per node of the plan; the session controller
auto-generates the full N x N table and must be told which entries are
inactive.
"""

import logging
from typing import Dict, List, Optional

from plangen.expressions import ExpressionSynthesizer
from plangen.model import ApplicationState, SessionLayerEFSM
from plangen.plan import SessionNode, TransitionEntry
from plangen.protocol_lowering import AbstractProtocolLayerTransformer, SimpleProtocolLayerTransformer

logger = logging.getLogger(__name__)


class SessionLayerTransformer:
    """
    Session layer lowering pass

    Traversal uses an explicit stack of (state, transition iterator) frames,
    which gives the same pre-order as a recursive walk without being bounded
    by the interpreter's recursion limit.
    """

    def __init__(self,
                 protocol_transformer: Optional[AbstractProtocolLayerTransformer] = None,
                 expression_synthesizer: Optional[ExpressionSynthesizer] = None):
        if protocol_transformer is None:
            protocol_transformer = SimpleProtocolLayerTransformer()
        if expression_synthesizer is None:
            expression_synthesizer = ExpressionSynthesizer()
        self.protocol_transformer = protocol_transformer
        self.expression_synthesizer = expression_synthesizer

    def transform(self, session_efsm: SessionLayerEFSM) -> List[SessionNode]:
        """
        Lower a session-layer EFSM

        Args:
            session_efsm: Session layer EFSM with an initial application state

        Returns:
            Session nodes in creation order; node.id is the list index

        Raises:
            UnknownRequestTypeError: a request has no registered transformer
        """
        nodes: List[SessionNode] = []
        if session_efsm.initial_state is None:
            return nodes

        # application state -> id of its session node
        visited: Dict[ApplicationState, int] = {}

        def visit(state):
            node = SessionNode(id=len(nodes), name=state.service.name)
            # register before the successors are walked to break cycles
            visited[state] = node.id
            nodes.append(node)
            node.requests = self.protocol_transformer.transform(state.protocol_details)
            stack.append((state, iter(state.outgoing_transitions)))

        stack = []
        visit(session_efsm.initial_state)

        while stack:
            state, transitions = stack[-1]
            transition = next(transitions, None)
            if transition is None:
                stack.pop()
                continue

            target = transition.target

            # only application states become nodes, the exit state is ignored
            if not isinstance(target, ApplicationState):
                continue

            if target not in visited:
                visit(target)

            self._add_transition(nodes[visited[state]], transition, visited[target])

        self.add_dummy_transitions(nodes)
        return nodes

    def _add_transition(self, node, transition, target_id):
        if node.find_transition(target_id) is not None:
            logger.warning(
                'Session state "%s" has more than one transition to "%s"; '
                'only the first one is kept.',
                node.name, transition.target.service.name)
            return

        node.transitions.append(TransitionEntry(
            target_id=target_id,
            guard=self.expression_synthesizer.guard_string(transition),
            action=self.expression_synthesizer.action_string(transition),
            disabled=False,
        ))

    def add_dummy_transitions(self, nodes: List[SessionNode]):
        """
        Complete every transition table in place

        Missing entries are added as disabled placeholders without guard or
        action; existing entries are confirmed as enabled.
        """
        for node in nodes:
            existing = {entry.target_id: entry for entry in node.transitions}
            for target in nodes:
                entry = existing.get(target.id)
                if entry is None:
                    node.transitions.append(TransitionEntry(target_id=target.id, disabled=True))
                else:
                    entry.disabled = False
