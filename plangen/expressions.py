"""Guard and action expressions of session-layer transitions."""

from plangen.model import ApplicationState, ApplicationTransition, ParameterType


class ExpressionSynthesizer:
    """
    Builds the guard and action strings attached to a session transition

    reference_format renders a read access to a session variable, e.g.
    "%s" for plain names or "${%s}" for JMeter variable references.
    """

    GUARD_SEPARATOR = ' && '
    ACTION_SEPARATOR = ' '

    def __init__(self, reference_format='%s'):
        self.reference_format = reference_format

    def reference(self, name):
        return self.reference_format % name

    def guard_string(self, transition: ApplicationTransition) -> str:
        terms = []
        for guard in transition.guards:
            parameter = guard.parameter
            if parameter.parameter_type is ParameterType.BOOLEAN:
                # negate=False yields the "!" prefix, matching the controller's convention
                if guard.negate:
                    terms.append(self.reference(parameter.name))
                else:
                    terms.append('!' + self.reference(parameter.name))
            elif parameter.parameter_type is ParameterType.INTEGER:
                terms.append(f"{self.reference(parameter.name)} > 0")
        return self.GUARD_SEPARATOR.join(terms)

    def action_string(self, transition: ApplicationTransition) -> str:
        statements = []
        source_name = _service_name(transition.source)
        target_name = _service_name(transition.target)

        for action in transition.actions:
            parameter = action.parameter
            name = parameter.name
            if parameter.parameter_type is ParameterType.BOOLEAN:
                statements.append(f"{name} = true;")
            elif parameter.parameter_type is ParameterType.INTEGER:
                if target_name is not None and target_name == parameter.target_name:
                    statements.append(f"{name} = {self.reference(name)} + 1;")
                elif source_name is not None and source_name == parameter.source_name:
                    statements.append(f"{name} = {self.reference(name)} - 1;")
        return self.ACTION_SEPARATOR.join(statements)


def _service_name(state):
    if isinstance(state, ApplicationState):
        return state.service.name
    return None
