"""
plangen Configuration - Default Test Plan Settings

DEFAULT_CONFIG is the single source of default values for the elements of a
generated execution plan. A YAML file with the same sections overlays these
defaults; values are looked up by "<section>_<key>".

Usage:
    from plangen.config import Configuration
    config = Configuration.from_defaults()
    config.load('testplan.yaml')
    print(config.get_int('threadGroup_numThreads'))

Example overlay:
    threadGroup:
      numThreads: 25
      forever: true
    markovController:
      arrivalController_maximumSessionNumber: 20
"""

import logging
from collections.abc import Mapping

import yaml

from plangen import __version__

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    # Test Plan root
    'testPlan': {
        'name': 'Test Plan',
        'comment': '',
    },

    # Thread Group executing the sessions
    'threadGroup': {
        'name': 'Setup Thread Group',
        'numThreads': 1,
        'rampUp': 1,
        'loops': 1,
        'forever': False,
        'onSampleError': 'continue',
    },

    # Markov Session Controller
    'markovController': {
        'name': 'Markov Session Controller',
        'arrivalController_enabled': False,
        'arrivalController_maximumSessionNumber': '',
        'arrivalController_loggingEnabled': False,
        'arrivalController_logFile': '',
    },

    # Behavior model matrix files
    'behaviorModels': {
        'separator': ',',
        'lineBreak': 0,  # 0 = Windows, 1 = Unix, 2 = MacOS
    },

    # Guard/action expressions: read access to a session variable
    'expressions': {
        'referenceFormat': '${%s}',
    },
}

TRUE_STRINGS = ('true', 'yes', 'on', '1')
FALSE_STRINGS = ('false', 'no', 'off', '0')


class Configuration(dict):
    """
    Flat configuration keyed by "<section>_<key>"

    Getters never raise for missing or malformed values: they log a warning
    and return the fallback instead.
    """

    @classmethod
    def from_defaults(cls, defaults=None):
        config = cls()
        config.update_sections(defaults or DEFAULT_CONFIG)
        return config

    def update_sections(self, sections: Mapping):
        """Overlay nested {section: {key: value}} settings"""
        for section, values in sections.items():
            if isinstance(values, Mapping):
                for key, value in values.items():
                    self[f"{section}_{key}"] = value
            else:
                # flat "<section>_<key>" entries are accepted as well
                self[str(section)] = values
        return self

    def load(self, filename):
        """
        Overlay settings from a YAML file

        Raises:
            OSError: the file cannot be read
            yaml.YAMLError: the file is not valid YAML
            ValueError: the document is not a mapping of sections
        """
        with open(filename, 'r', encoding='utf-8') as f:
            return self._overlay(yaml.safe_load(f), filename)

    def loads(self, text):
        return self._overlay(yaml.safe_load(text), '<string>')

    def _overlay(self, data, source):
        if data is None:
            return self
        if not isinstance(data, Mapping):
            raise ValueError(f"{source}: configuration must be a mapping of sections, "
                             f"found {type(data).__name__}")
        return self.update_sections(data)

    def get_string(self, key, default=''):
        value = self.get(key)
        if value is None:
            logger.warning('Could not get String value for property "%s"; will use value "%s" instead.',
                           key, default)
            return default
        if isinstance(value, bool):
            return 'true' if value else 'false'
        return str(value)

    def get_boolean(self, key, default=False):
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if str(value).lower() in TRUE_STRINGS:
            return True
        if str(value).lower() in FALSE_STRINGS:
            return False
        logger.warning('Could not parse boolean value for property "%s"; will use value "%s" instead.',
                       key, default)
        return default

    def get_int(self, key, default=0):
        value = self.get(key, default)
        if isinstance(value, bool):
            value = None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning('Could not parse integer value for property "%s"; will use value %s instead.',
                           key, default)
            return default

    def get_float(self, key, default=0.0):
        value = self.get(key, default)
        if isinstance(value, bool):
            value = None
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning('Could not parse double value for property "%s"; will use value %s instead.',
                           key, default)
            return default


def get_generated_plan_comment(source=None):
    """
    Get the comment placed at the top of generated execution plans

    "--" must not occur inside an XML comment, so it is broken up.
    """
    lines = [f"Generated by plangen {__version__}"]
    if source:
        lines.append(f"From: {source}")
    lines.append('Behavior model matrices are referenced by absolute path.')
    comment = '\n'.join(lines)
    while '--' in comment:
        comment = comment.replace('--', '- -')
    return comment
