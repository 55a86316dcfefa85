"""
Request Transformers

One transformer per request variant turns a model request into a
RequestNode. Lowering passes receive the registry (request class ->
transformer) at construction time.
"""

from typing import Dict, List, Optional, Type

from plangen.errors import TransformationError
from plangen.model import (
    BeanShellRequest,
    HTTPRequest,
    JavaRequest,
    JUnitRequest,
    Request,
    SOAPRequest,
)
from plangen.plan import AssertionNode, RequestNode

# Separator of alternative values in a request parameter ("a;b;c")
PARAMETER_VALUES_SEPARATOR = ';'


class AbstractRequestTransformer:
    """Base class: validates the request class, copies properties, adds assertions"""

    request_type: Type[Request] = Request
    kind = ''

    def transform(self, request: Request) -> RequestNode:
        self._ensure_valid_request_type(request)

        node = RequestNode(
            name=request.eid,
            kind=self.kind,
            properties={p.key: p.value for p in request.properties},
            arguments=self._transform_parameters(request),
        )

        # assertion only if any test strings have been defined
        node.assertion = self._transform_assertions(request)
        return node

    def _transform_parameters(self, request: Request) -> List[tuple]:
        return []

    def _transform_assertions(self, request: Request) -> Optional[AssertionNode]:
        if not request.assertions:
            return None
        return AssertionNode(test_strings=[a.pattern_to_test for a in request.assertions])

    def _ensure_valid_request_type(self, request: Request):
        if not isinstance(request, self.request_type):
            raise TransformationError(
                f"detected invalid request type (expected: {self.request_type.__name__}, "
                f"found: {type(request).__name__})"
            )


class HTTPRequestTransformer(AbstractRequestTransformer):
    request_type = HTTPRequest
    kind = 'http'

    def _transform_parameters(self, request):
        arguments = []
        for parameter in request.parameters:
            values = parameter.value.split(PARAMETER_VALUES_SEPARATOR)
            if len(values) > 1:
                # pick one of the alternatives per request at runtime
                value = '${__GetRandomString(${%s},;)}' % parameter.name
            else:
                value = values[0]
            arguments.append((parameter.name, value))
        return arguments


class JavaRequestTransformer(AbstractRequestTransformer):
    request_type = JavaRequest
    kind = 'java'

    def _transform_parameters(self, request):
        return [(p.name, p.value) for p in request.parameters]


class BeanShellRequestTransformer(AbstractRequestTransformer):
    """BeanShell samplers have no parameters"""
    request_type = BeanShellRequest
    kind = 'beanshell'


class JUnitRequestTransformer(AbstractRequestTransformer):
    """JUnit samplers have no parameters"""
    request_type = JUnitRequest
    kind = 'junit'


class SOAPRequestTransformer(AbstractRequestTransformer):
    """SOAP samplers have no parameters"""
    request_type = SOAPRequest
    kind = 'soap'


def default_request_transformers() -> Dict[Type[Request], AbstractRequestTransformer]:
    """Build a fresh registry with a transformer for every known request variant"""
    transformers = [
        HTTPRequestTransformer(),
        JavaRequestTransformer(),
        BeanShellRequestTransformer(),
        JUnitRequestTransformer(),
        SOAPRequestTransformer(),
    ]
    return {t.request_type: t for t in transformers}
