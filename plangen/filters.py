"""
Execution Plan Filters

Filters modify an assembled execution plan, e.g. to install the behavior
mix or the workload intensity into the Markov session controller.
"""

import logging
from typing import Optional, Type

from plangen.behavior_mix import BehaviorMixBuilder
from plangen.model import WorkloadModel
from plangen.plan import ExecutionPlan, MarkovControllerNode

logger = logging.getLogger(__name__)


class AbstractFilter:
    """Base class of all plan filters"""

    # short name used on the command line
    flag = ''

    def modify_plan(self, plan: ExecutionPlan, workload_model: WorkloadModel) -> ExecutionPlan:
        raise NotImplementedError

    def find_unique(self, plan: ExecutionPlan, node_type: Type):
        """
        Find the single node of node_type in the plan

        Returns:
            First matching node (a warning is logged if there are several),
            or None (with an error logged) if there is none
        """
        nodes = [n for n in plan.iter_nodes() if isinstance(n, node_type)]
        if not nodes:
            logger.error('Could not find element of type %s in execution plan - '
                         'implementation of additional functionality failed.', node_type.__name__)
            return None
        if len(nodes) > 1:
            logger.warning('Could not identify unique element of type %s - ambiguous '
                           'elements available, will use the first match.', node_type.__name__)
        return nodes[0]


class ConstantWorkloadIntensityFilter(AbstractFilter):
    """Enable the arrival controller with the model's workload intensity formula"""

    flag = 'C'

    def modify_plan(self, plan, workload_model):
        controller = self.find_unique(plan, MarkovControllerNode)
        if controller is not None:
            controller.arrival_enabled = True
            controller.arrival_formula = workload_model.workload_intensity.formula
        return plan


class BehaviorMixFilter(AbstractFilter):
    """Write the behavior model matrices and install the mix entries (always applied)"""

    def __init__(self, builder: Optional[BehaviorMixBuilder] = None):
        self.builder = builder or BehaviorMixBuilder()

    def modify_plan(self, plan, workload_model):
        controller = self.find_unique(plan, MarkovControllerNode)
        if controller is None:
            return plan

        report = self.builder.build(workload_model.behavior_mix, workload_model.session_layer_efsm)
        controller.behavior_mix = list(report.entries)
        plan.behavior_mix_report = report
        return plan


# Filters selectable by their short name
FILTERS = {
    ConstantWorkloadIntensityFilter.flag: ConstantWorkloadIntensityFilter,
}


def filters_from_flags(flags):
    """Instantiate filters from a sequence of short names, e.g. "C"."""
    filters = []
    for flag in flags or '':
        if flag not in FILTERS:
            raise ValueError(f"Unknown filter flag: {flag} (available: {', '.join(sorted(FILTERS))})")
        filters.append(FILTERS[flag]())
    return filters
