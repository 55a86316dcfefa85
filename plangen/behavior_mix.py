"""
Behavior Mix Matrix Builder

Writes one probability/think-time matrix per behavior model of a behavior
mix and collects the (name, relative frequency, matrix file) entries that
configure the Markov session controller.

Matrix layout (one line per row, comma separated):

    ""       Login*       Browse       Checkout     $
    Login*   0.0; n(..)   0.8; n(..)   0.0; n(..)   0.2; n(..)
    Browse   ...

The initial service is marked with "*", the last column is the exit state.
"""

import csv
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Type

from plangen.errors import MatrixWriteFailure, TransformationError, UnknownThinkTimeTypeError
from plangen.model import (
    BehaviorMix,
    BehaviorModel,
    BehaviorModelExitState,
    MarkovState,
    Service,
    SessionLayerEFSM,
    ThinkTime,
    Transition,
)
from plangen.plan import BehaviorMixEntry
from plangen.thinktimes import AbstractThinkTimeFormatter, default_think_time_formatters

logger = logging.getLogger(__name__)

EXIT_STATE_NAME = '$'
INITIAL_STATE_APPENDIX = '*'

# Line break types of the matrix files
LINE_BREAKS = {
    0: '\r\n',  # Windows
    1: '\n',    # Unix
    2: '\r',    # MacOS
}


class CSVHandler:
    """Reads and writes string matrices as delimited text"""

    DEFAULT_SEPARATOR = ','

    def __init__(self, separator=DEFAULT_SEPARATOR, line_break_type=0):
        if line_break_type not in LINE_BREAKS:
            raise ValueError(f"Invalid line break type {line_break_type}, expected one of {sorted(LINE_BREAKS)}")
        self.separator = separator
        self.line_break = LINE_BREAKS[line_break_type]

    def write_values(self, filename, values: List[List[str]]):
        with open(filename, 'w', encoding='utf-8', newline='') as f:
            writer = csv.writer(f, delimiter=self.separator, lineterminator=self.line_break)
            writer.writerows(values)

    def read_values(self, filename) -> List[List[str]]:
        with open(filename, 'r', encoding='utf-8', newline='') as f:
            reader = csv.reader(f, delimiter=self.separator)
            return [[token.strip() for token in row] for row in reader if row]


@dataclass
class BehaviorModelFailure:
    name: str
    path: str
    error: Exception


@dataclass
class BehaviorMixReport:
    entries: List[BehaviorMixEntry] = field(default_factory=list)
    failures: List[BehaviorModelFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures


def get_full_file_path(parent, child) -> str:
    if not parent:
        return str(child)
    return os.path.abspath(Path(parent) / child)


class BehaviorMixBuilder:
    """
    Builds and writes behavior model matrices

    Each behavior model is handled on its own: a model whose think time type
    is unknown or whose file cannot be written is reported in the returned
    BehaviorMixReport, and the remaining models are still processed.
    """

    def __init__(self,
                 csv_handler: Optional[CSVHandler] = None,
                 output_path: str = '.',
                 think_time_formatters: Optional[Dict[Type[ThinkTime], AbstractThinkTimeFormatter]] = None):
        if think_time_formatters is None:
            think_time_formatters = default_think_time_formatters()
        self.csv_handler = csv_handler or CSVHandler()
        self.output_path = output_path
        self.think_time_formatters = think_time_formatters

    def build(self, behavior_mix: BehaviorMix, session_efsm: SessionLayerEFSM) -> BehaviorMixReport:
        report = BehaviorMixReport()

        for relative_frequency in behavior_mix.relative_frequencies:
            behavior_model = relative_frequency.behavior_model
            full_path = get_full_file_path(self.output_path, behavior_model.filename)

            try:
                self.write_behavior_model(behavior_model, session_efsm, full_path)
            except (TransformationError, MatrixWriteFailure) as e:
                logger.error('Behavior Model "%s" skipped: %s', behavior_model.name, e)
                report.failures.append(BehaviorModelFailure(behavior_model.name, full_path, e))
                continue

            report.entries.append(BehaviorMixEntry(
                name=behavior_model.name,
                relative_frequency=float(relative_frequency.value),
                filename=full_path,
            ))

        return report

    def write_behavior_model(self, behavior_model: BehaviorModel, session_efsm: SessionLayerEFSM, full_path: str):
        """
        Build the matrix of one behavior model and write it to full_path

        Raises:
            UnknownThinkTimeTypeError: think time variant has no formatter
            MatrixWriteFailure: the file could not be written
        """
        values = self.build_matrix(behavior_model, session_efsm)

        try:
            self.csv_handler.write_values(full_path, values)
        except OSError as e:
            raise MatrixWriteFailure(behavior_model.name, full_path, e.strerror or str(e)) from e

        logger.info('Behavior Model "%s" has been written to file "%s".', behavior_model.name, full_path)

    def build_matrix(self, behavior_model: BehaviorModel, session_efsm: SessionLayerEFSM) -> List[List[str]]:
        formatter = self.select_formatter(behavior_model)

        services = [state.service for state in session_efsm.application_states]
        initial_name = session_efsm.initial_state.service.name if session_efsm.initial_state else None

        values = [self._build_header_row(services, initial_name)]
        for service in services:
            values.append(self._build_row(service, services, behavior_model, initial_name, formatter))
        return values

    def select_formatter(self, behavior_model: BehaviorModel) -> AbstractThinkTimeFormatter:
        """Pick the formatter for the think time on the first initial transition"""
        initial_state = behavior_model.initial_state
        if initial_state is None or not initial_state.outgoing_transitions:
            raise TransformationError(
                f'Behavior Model "{behavior_model.name}" has no outgoing transition in its initial state')

        think_time_type = type(initial_state.outgoing_transitions[0].think_time)
        formatter = self.think_time_formatters.get(think_time_type)
        if formatter is None:
            raise UnknownThinkTimeTypeError(think_time_type)
        return formatter

    def _build_header_row(self, services: List[Service], initial_name) -> List[str]:
        header = ['']
        header.extend(self._get_header_name(s, initial_name) for s in services)
        header.append(EXIT_STATE_NAME)
        return header

    def _build_row(self, service, services, behavior_model, initial_name, formatter) -> List[str]:
        row = [self._get_header_name(service, initial_name)]
        markov_state = find_markov_state_by_service(behavior_model.markov_states, service)

        for column_service in services:
            row.append(self._get_value(markov_state, column_service, formatter))

        # None as column service selects the exit state
        row.append(self._get_value(markov_state, None, formatter))
        return row

    def _get_header_name(self, service: Service, initial_name) -> str:
        if service.name == initial_name:
            return service.name + INITIAL_STATE_APPENDIX
        return service.name

    def _get_value(self, markov_state, column_service, formatter) -> str:
        transition = None
        if markov_state is not None:
            transition = find_transition_by_target_service(markov_state.outgoing_transitions, column_service)

        if transition is None:
            return f"0.0; {formatter.get_default_string()}"

        think_time = transition.think_time
        if think_time is not None and not isinstance(think_time, formatter.think_time_type):
            raise UnknownThinkTimeTypeError(type(think_time))

        return f"{float(transition.probability)!r}; {formatter.get_think_time_string(think_time)}"


def find_markov_state_by_service(markov_states: List[MarkovState], service: Service) -> Optional[MarkovState]:
    for markov_state in markov_states:
        if markov_state.service is service:
            return markov_state
    return None


def find_transition_by_target_service(transitions: List[Transition], target_service) -> Optional[Transition]:
    """
    Find the transition leading to target_service

    Args:
        transitions: Outgoing transitions of a Markov state
        target_service: Service of the target state, or None for the exit state

    Returns:
        Matching transition, or None which stands for probability zero
    """
    for transition in transitions:
        target = transition.target
        if target_service is None:
            if isinstance(target, BehaviorModelExitState):
                return transition
        elif isinstance(target, MarkovState) and target.service is target_service:
            return transition
    return None
