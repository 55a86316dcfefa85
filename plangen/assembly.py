"""
Execution Plan Assembly

Stitches the lowered session layer and the behavior mix into one
execution plan tree.
"""

import logging
from typing import List, Optional

from plangen.behavior_mix import BehaviorMixBuilder, CSVHandler
from plangen.config import Configuration
from plangen.expressions import ExpressionSynthesizer
from plangen.filters import AbstractFilter, BehaviorMixFilter
from plangen.model import WorkloadModel
from plangen.plan import ExecutionPlan, MarkovControllerNode, ThreadGroupNode, UserParameter
from plangen.protocol_lowering import SimpleProtocolLayerTransformer
from plangen.session_lowering import SessionLayerTransformer

logger = logging.getLogger(__name__)


class SimpleTestPlanTransformer:
    """
    Builds an execution plan with linear request sequences

    Request transformers, think time formatters and the expression format
    are injected; defaults cover every known variant.
    """

    def __init__(self, csv_handler: Optional[CSVHandler] = None, behavior_models_output_path='.',
                 request_transformers=None, think_time_formatters=None,
                 expression_synthesizer: Optional[ExpressionSynthesizer] = None):
        self.csv_handler = csv_handler or CSVHandler()
        self.behavior_models_output_path = behavior_models_output_path
        self.think_time_formatters = think_time_formatters

        protocol_transformer = SimpleProtocolLayerTransformer(request_transformers)
        self.session_layer_transformer = SessionLayerTransformer(protocol_transformer, expression_synthesizer)

    def transform(self, workload_model: WorkloadModel, config: Optional[Configuration] = None,
                  filters: Optional[List[AbstractFilter]] = None) -> ExecutionPlan:
        """
        Transform a workload model into an execution plan

        Raises:
            UnknownRequestTypeError: lowering failed; no plan is returned
        """
        if config is None:
            config = Configuration.from_defaults()

        # lower first, errors abort before anything is written
        session_nodes = self.session_layer_transformer.transform(workload_model.session_layer_efsm)
        logger.info('Lowered session layer into %d session nodes', len(session_nodes))

        plan = self._create_plan(workload_model, config)
        plan.markov_controller.session_nodes = session_nodes

        builder = BehaviorMixBuilder(self.csv_handler, self.behavior_models_output_path,
                                     self.think_time_formatters)
        plan = BehaviorMixFilter(builder).modify_plan(plan, workload_model)

        for plan_filter in filters or []:
            plan = plan_filter.modify_plan(plan, workload_model)

        return plan

    def _create_plan(self, workload_model, config) -> ExecutionPlan:
        thread_group = ThreadGroupNode(
            name=config.get_string('threadGroup_name', 'Setup Thread Group'),
            num_threads=config.get_int('threadGroup_numThreads', 1),
            ramp_up=config.get_int('threadGroup_rampUp', 1),
            loops=config.get_int('threadGroup_loops', 1),
            forever=config.get_boolean('threadGroup_forever', False),
            on_sample_error=config.get_string('threadGroup_onSampleError', 'continue'),
        )

        controller = MarkovControllerNode(
            name=config.get_string('markovController_name', 'Markov Session Controller'),
            arrival_enabled=config.get_boolean('markovController_arrivalController_enabled', False),
            arrival_formula=config.get_string('markovController_arrivalController_maximumSessionNumber', ''),
            arrival_logging_enabled=config.get_boolean('markovController_arrivalController_loggingEnabled', False),
            arrival_log_file=config.get_string('markovController_arrivalController_logFile', ''),
        )
        if not controller.arrival_formula:
            controller.arrival_formula = workload_model.workload_intensity.formula

        user_parameters = [
            UserParameter(name=p.name, value=p.get_initial_value())
            for p in workload_model.guard_action_parameters
        ]

        return ExecutionPlan(
            name=config.get_string('testPlan_name', 'Test Plan'),
            comment=config.get_string('testPlan_comment', ''),
            thread_group=thread_group,
            user_parameters=user_parameters,
            markov_controller=controller,
        )
