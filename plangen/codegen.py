#!/usr/bin/env python3
"""
Execution Plan Generator (Python + Jinja2)

Generates JMeter-style execution plans (.jmx) and behavior model matrices
from XML workload models.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from plangen.assembly import SimpleTestPlanTransformer
from plangen.behavior_mix import LINE_BREAKS, CSVHandler
from plangen.config import Configuration, get_generated_plan_comment
from plangen.errors import ValidationError
from plangen.expressions import ExpressionSynthesizer
from plangen.filters import AbstractFilter, filters_from_flags
from plangen.model_parser import WorkloadModelParser
from plangen.plan import ExecutionPlan
from plangen.validator import ModelValidator

logger = logging.getLogger(__name__)

# Sampler element per request kind
SAMPLER_ELEMENTS = {
    'http': 'HTTPSamplerProxy',
    'java': 'JavaSampler',
    'beanshell': 'BeanShellSampler',
    'junit': 'JUnitSampler',
    'soap': 'SoapSampler',
}


class PlanWriter:
    """
    Execution plan writer

    Uses Jinja2 templates to render an ExecutionPlan as a .jmx document.
    """

    TEMPLATE_NAME = 'testplan.jmx'

    def __init__(self, template_dir=None):
        if template_dir is None:
            template_dir = Path(__file__).parent / 'templates'

        # Setup Jinja2 environment
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['xml', 'jmx']),
            trim_blocks=True,
            lstrip_blocks=True
        )

        # Add custom filters
        self.env.filters['xml_bool'] = self._xml_bool
        self.env.filters['sampler_element'] = self._sampler_element

    def _xml_bool(self, value):
        """Render a Python bool as an XML boolean"""
        return 'true' if value else 'false'

    def _sampler_element(self, kind):
        """Element name of the sampler for a request kind"""
        if kind not in SAMPLER_ELEMENTS:
            raise ValueError(f"No sampler element for request kind: {kind}")
        return SAMPLER_ELEMENTS[kind]

    def render(self, plan: ExecutionPlan, source=None) -> str:
        template = self.env.get_template(self.TEMPLATE_NAME)
        return template.render(plan=plan, header=get_generated_plan_comment(source))

    def write(self, plan: ExecutionPlan, output_file, source=None) -> Path:
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.render(plan, source))

        return output_path


class TestPlanGenerator:
    """
    Facade: parse, validate, transform and write a workload model

    The configuration provides the element defaults and the format of the
    behavior model files.
    """

    __test__ = False  # not a pytest test class

    def __init__(self, config: Optional[Configuration] = None, template_dir=None):
        self.config = config if config is not None else Configuration.from_defaults()
        self.parser = WorkloadModelParser()
        self.validator = ModelValidator()
        self.writer = PlanWriter(template_dir)

    def generate(self, input_file, output_file, behavior_models_path='.',
                 filters: Optional[List[AbstractFilter]] = None) -> ExecutionPlan:
        """
        Generate an execution plan file from a workload model file

        Args:
            input_file: Path to XML workload model
            output_file: Path of the .jmx file to write
            behavior_models_path: Directory for the behavior model matrices
            filters: Additional plan filters, applied in order

        Returns:
            The generated ExecutionPlan

        Raises:
            ModelParseError: the model file is malformed
            ValidationError: the model is structurally invalid
            UnknownRequestTypeError: a request variant cannot be lowered
        """
        model = self.parser.parse_file(input_file)

        diagnostics = self.validator.validate_and_report(model)
        if diagnostics:
            raise ValidationError(diagnostics)

        csv_handler = CSVHandler(
            separator=self.config.get_string('behaviorModels_separator', ','),
            line_break_type=self.config.get_int('behaviorModels_lineBreak', 0),
        )
        synthesizer = ExpressionSynthesizer(
            reference_format=self.config.get_string('expressions_referenceFormat', '${%s}'))

        transformer = SimpleTestPlanTransformer(
            csv_handler=csv_handler,
            behavior_models_output_path=behavior_models_path,
            expression_synthesizer=synthesizer,
        )
        plan = transformer.transform(model, self.config, filters)

        output_path = self.writer.write(plan, output_file, source=Path(input_file).name)
        logger.info('Execution plan written to %s', output_path)
        return plan


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Generate execution plans and behavior model matrices from workload models'
    )
    parser.add_argument('-i', '--input', required=True,
                        help='XML input file which provides the workload model')
    parser.add_argument('-o', '--output', required=True,
                        help='Output file of the execution plan (.jmx)')
    parser.add_argument('-t', '--testplanproperties', default=None,
                        help='YAML file whose sections override the default values of the plan elements')
    parser.add_argument('-p', '--path', default='./',
                        help='Destination directory for the behavior model files (default: ./)')
    parser.add_argument('-l', '--linebreak', type=int, choices=sorted(LINE_BREAKS), default=None,
                        help='Line break of the behavior model files (0 = Windows, 1 = Unix, 2 = MacOS)')
    parser.add_argument('-f', '--filters', default='C',
                        help='Filters applied after the transformation, as a sequence of short names (default: C)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log progress information')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s'
    )

    # Check input file exists
    if not Path(args.input).exists():
        print(f"Error: workload model file not found: {args.input}", file=sys.stderr)
        return 1

    try:
        config = Configuration.from_defaults()
        if args.testplanproperties:
            config.load(args.testplanproperties)
        if args.linebreak is not None:
            config['behaviorModels_lineBreak'] = args.linebreak

        generator = TestPlanGenerator(config)

        print(f"Generating execution plan for: {args.input}")
        plan = generator.generate(args.input, args.output, args.path, filters_from_flags(args.filters))
    except Exception as e:
        print(f"Error generating execution plan: {e}", file=sys.stderr)
        return 1

    print(f"  Session nodes: {len(plan.session_nodes)}")
    report = plan.behavior_mix_report
    if report is not None:
        for entry in report.entries:
            print(f"  ✓ Behavior model: {entry.filename}")
        for failure in report.failures:
            print(f"  ✗ Behavior model {failure.name}: {failure.error}", file=sys.stderr)
    print(f"  ✓ Generated: {args.output}")

    return 0 if report is None or report.success else 1


if __name__ == '__main__':
    sys.exit(main())
