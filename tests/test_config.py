import logging

import pytest
import yaml

from plangen import __version__
from plangen.config import DEFAULT_CONFIG, Configuration, get_generated_plan_comment


def test_defaults_are_flattened():
    config = Configuration.from_defaults()

    assert config['threadGroup_numThreads'] == 1
    assert config['threadGroup_forever'] is False
    assert config['markovController_arrivalController_enabled'] is False
    assert config['expressions_referenceFormat'] == '${%s}'
    assert len(config) == sum(len(section) for section in DEFAULT_CONFIG.values())


def test_yaml_overlay_defaults():
    config = Configuration.from_defaults().loads("""
# thread group
threadGroup:
  numThreads: 25
  forever: true
testPlan:
  name: Shop Load Test
markovController:
  arrivalController_logFile: logs/arrivals.log
""")

    assert config.get_int('threadGroup_numThreads') == 25
    assert config.get_boolean('threadGroup_forever') is True
    assert config.get_string('testPlan_name') == 'Shop Load Test'
    assert config.get_string('markovController_arrivalController_logFile') == 'logs/arrivals.log'
    assert config.get_int('threadGroup_rampUp') == 1


def test_load_file(tmp_path):
    path = tmp_path / 'testplan.yaml'
    path.write_text('threadGroup:\n  loops: 7\nbehaviorModels:\n  lineBreak: 1\n', encoding='utf-8')

    config = Configuration.from_defaults().load(path)

    assert config.get_int('threadGroup_loops') == 7
    assert config.get_int('behaviorModels_lineBreak') == 1


def test_flat_keys_are_accepted():
    config = Configuration.from_defaults().loads('threadGroup_numThreads: 3\n')

    assert config.get_int('threadGroup_numThreads') == 3


def test_empty_document_keeps_defaults():
    config = Configuration.from_defaults().loads('')

    assert config == Configuration.from_defaults()


def test_non_mapping_document_raises():
    with pytest.raises(ValueError, match='mapping of sections'):
        Configuration().loads('- numThreads\n- rampUp\n')


def test_invalid_yaml_raises():
    with pytest.raises(yaml.YAMLError):
        Configuration().loads('threadGroup: [numThreads\n')


def test_string_values_are_coerced():
    config = Configuration().loads("threadGroup:\n  numThreads: '12'\n  forever: 'TRUE'\n")

    assert config.get_int('threadGroup_numThreads') == 12
    assert config.get_boolean('threadGroup_forever') is True
    assert config.get_string('threadGroup_forever') == 'TRUE'


def test_boolean_rendered_as_lowercase_string():
    config = Configuration.from_defaults()

    assert config.get_string('threadGroup_forever') == 'false'


def test_missing_key_falls_back_with_warning(caplog):
    config = Configuration()

    with caplog.at_level(logging.WARNING, logger='plangen.config'):
        assert config.get_string('testPlan_name', 'Fallback') == 'Fallback'

    assert 'testPlan_name' in caplog.text


def test_malformed_values_fall_back(caplog):
    config = Configuration().loads('a: many\nb: maybe\nc: 1.5x\n')

    with caplog.at_level(logging.WARNING, logger='plangen.config'):
        assert config.get_int('a', 3) == 3
        assert config.get_boolean('b', True) is True
        assert config.get_float('c', 0.5) == 0.5

    assert len(caplog.records) == 3


def test_get_float():
    config = Configuration().loads('ratio: 0.25\n')

    assert config.get_float('ratio') == 0.25


def test_generated_plan_comment():
    comment = get_generated_plan_comment('shop.xml')

    assert comment.startswith(f"Generated by plangen {__version__}")
    assert 'From: shop.xml' in comment
    assert 'From:' not in get_generated_plan_comment()


def test_generated_plan_comment_breaks_up_double_hyphens():
    comment = get_generated_plan_comment('a--b---c.xml')

    assert '--' not in comment
    assert 'From: a- -b- - -c.xml' in comment
