import logging

import pytest
from lxml import etree

from plangen.assembly import SimpleTestPlanTransformer
from plangen.codegen import PlanWriter, TestPlanGenerator, main
from plangen.errors import ValidationError
from plangen.expressions import ExpressionSynthesizer
from plangen.model_parser import WorkloadModelParser

APPLICATION_STATE = 'net.voorn.markov4jmeter.control.ApplicationState'


def _render(tmp_path, shop_model_xml):
    model = WorkloadModelParser().parse_string(shop_model_xml)
    plan = SimpleTestPlanTransformer(
        behavior_models_output_path=str(tmp_path),
        expression_synthesizer=ExpressionSynthesizer('${%s}'),
    ).transform(model)
    return PlanWriter().render(plan, source='shop.xml')


def _props(root, name):
    return [e.text or '' for e in root.iter('stringProp') if e.get('name') == name]


def test_rendered_plan_is_well_formed(tmp_path, shop_model_xml):
    text = _render(tmp_path, shop_model_xml)
    root = etree.fromstring(text.encode('utf-8'))

    states = list(root.iter(APPLICATION_STATE))
    assert [s.get('testname') for s in states] == ['Login', 'Browse', 'Checkout']
    assert len(list(root.iter('HTTPSamplerProxy'))) == 2
    assert len(list(root.iter('JavaSampler'))) == 1
    assert len(list(root.iter('BeanShellSampler'))) == 1


def test_guards_are_escaped(tmp_path, shop_model_xml):
    text = _render(tmp_path, shop_model_xml)

    assert '${loggedIn} &amp;&amp; ${items} &gt; 0' in text
    root = etree.fromstring(text.encode('utf-8'))
    assert '${loggedIn} && ${items} > 0' in _props(root, 'ApplicationStateTransition.guard')


def test_transition_tables_are_rendered(tmp_path, shop_model_xml):
    root = etree.fromstring(_render(tmp_path, shop_model_xml).encode('utf-8'))

    for state in root.iter(APPLICATION_STATE):
        targets = [e.text for e in state.iter('intProp') if e.get('name') == 'ApplicationStateTransition.dstStateId']
        assert sorted(targets) == ['0', '1', '2']


def test_behavior_mix_and_assertions_are_rendered(tmp_path, shop_model_xml):
    root = etree.fromstring(_render(tmp_path, shop_model_xml).encode('utf-8'))

    assert _props(root, 'BehaviorMixEntry.bName') == ['buyer', 'browser']
    assert _props(root, 'BehaviorMixEntry.filename') == [str(tmp_path / 'buyer.csv'), str(tmp_path / 'browser.csv')]
    assertions = list(root.iter('ResponseAssertion'))
    assert len(assertions) == 1
    assert [e.text for e in assertions[0].iter('stringProp') if e.get('name') == '0'] == ['Welcome']


def test_unknown_sampler_kind():
    with pytest.raises(ValueError):
        PlanWriter()._sampler_element('ftp')


def test_generator_writes_plan_and_matrices(tmp_path, shop_model_file):
    output = tmp_path / 'out' / 'shop.jmx'

    plan = TestPlanGenerator().generate(shop_model_file, output, str(tmp_path))

    assert output.exists()
    assert (tmp_path / 'buyer.csv').exists()
    assert (tmp_path / 'browser.csv').exists()
    assert len(plan.session_nodes) == 3
    assert 'From: shop.xml' in output.read_text(encoding='utf-8')


def test_generator_rejects_invalid_model(tmp_path, shop_model_xml):
    path = tmp_path / 'invalid.xml'
    path.write_text(shop_model_xml.replace('probability="0.7"', 'probability="0.9"'), encoding='utf-8')

    with pytest.raises(ValidationError) as excinfo:
        TestPlanGenerator().generate(path, tmp_path / 'invalid.jmx', str(tmp_path))

    assert excinfo.value.diagnostics[0].path == 'behaviorModels/browser/ms_browse'
    assert not (tmp_path / 'invalid.jmx').exists()


def test_main(tmp_path, shop_model_file, capsys):
    output = tmp_path / 'shop.jmx'

    code = main(['-i', str(shop_model_file), '-o', str(output), '-p', str(tmp_path), '-l', '1'])

    assert code == 0
    assert output.exists()
    assert b'\r\n' not in (tmp_path / 'buyer.csv').read_bytes()
    out = capsys.readouterr().out
    assert 'Session nodes: 3' in out
    assert f"Generated: {output}" in out


def test_main_applies_configuration_file(tmp_path, shop_model_file):
    config_file = tmp_path / 'testplan.yaml'
    config_file.write_text('threadGroup:\n  numThreads: 42\n', encoding='utf-8')
    output = tmp_path / 'shop.jmx'

    code = main(['-i', str(shop_model_file), '-o', str(output), '-p', str(tmp_path),
                 '-t', str(config_file)])

    assert code == 0
    root = etree.parse(str(output)).getroot()
    assert _props(root, 'ThreadGroup.num_threads') == ['42']
    assert [e.text for e in root.iter('boolProp')
            if e.get('name') == 'MarkovController.arrivalCtrlEnabled'] == ['true']


def test_main_missing_input(tmp_path, capsys):
    code = main(['-i', str(tmp_path / 'missing.xml'), '-o', str(tmp_path / 'out.jmx')])

    assert code == 1
    assert 'not found' in capsys.readouterr().err


def test_main_reports_invalid_model(tmp_path, shop_model_xml, capsys):
    path = tmp_path / 'invalid.xml'
    path.write_text(shop_model_xml.replace('value="0.25"', 'value="-0.25"'), encoding='utf-8')

    code = main(['-i', str(path), '-o', str(tmp_path / 'out.jmx'), '-p', str(tmp_path)])

    assert code == 1
    assert 'negative relative frequency' in capsys.readouterr().err


def test_main_unknown_filter(tmp_path, shop_model_file, capsys):
    code = main(['-i', str(shop_model_file), '-o', str(tmp_path / 'out.jmx'), '-p', str(tmp_path), '-f', 'Z'])

    assert code == 1
    assert 'Unknown filter flag' in capsys.readouterr().err


def test_main_reports_matrix_write_failure(tmp_path, shop_model_file, capsys):
    code = main(['-i', str(shop_model_file), '-o', str(tmp_path / 'out.jmx'),
                 '-p', str(tmp_path / 'missing')])

    assert code == 1
    err = capsys.readouterr().err
    assert 'buyer' in err
    assert 'browser' in err
    assert (tmp_path / 'out.jmx').exists()


def test_argument_element_types_follow_sampler_kind(tmp_path, shop_model_xml):
    root = etree.fromstring(_render(tmp_path, shop_model_xml).encode('utf-8'))

    http_args = [e.get('elementType') for sampler in root.iter('HTTPSamplerProxy')
                 for e in sampler.iter('elementProp') if e.get('name') == 'user']
    java_args = [e.get('elementType') for sampler in root.iter('JavaSampler')
                 for e in sampler.iter('elementProp') if e.get('name') == 'category']
    assert http_args == ['HTTPArgument']
    assert java_args == ['Argument']


def test_header_comment_survives_double_hyphen_in_source(tmp_path, shop_model_xml):
    model = WorkloadModelParser().parse_string(shop_model_xml)
    plan = SimpleTestPlanTransformer(behavior_models_output_path=str(tmp_path)).transform(model)

    text = PlanWriter().render(plan, source='shop--v2.xml')

    root = etree.fromstring(text.encode('utf-8'))
    comment = root.getprevious()
    assert isinstance(comment, etree._Comment)
    assert 'From: shop- -v2.xml' in comment.text


def test_generator_logs_diagnostics(tmp_path, shop_model_xml, caplog):
    path = tmp_path / 'invalid.xml'
    path.write_text(shop_model_xml.replace('probability="0.7"', 'probability="0.9"'), encoding='utf-8')

    with caplog.at_level(logging.ERROR, logger='plangen.validator'):
        with pytest.raises(ValidationError):
            TestPlanGenerator().generate(path, tmp_path / 'invalid.jmx', str(tmp_path))

    assert 'behaviorModels/browser/ms_browse: outgoing probabilities sum to 1.2 > 1' in caplog.text
