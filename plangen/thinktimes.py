"""Think time formatters for behavior model matrix cells."""

from typing import Dict, Type

from plangen.model import NormallyDistributedThinkTime, ThinkTime


class AbstractThinkTimeFormatter:
    """Renders a think time as the textual part of a matrix cell"""

    think_time_type: Type[ThinkTime] = ThinkTime

    def get_default_string(self) -> str:
        """Think time of a transition that does not exist in the model"""
        raise NotImplementedError

    def get_think_time_string(self, think_time: ThinkTime) -> str:
        raise NotImplementedError

    @staticmethod
    def format_float(value) -> str:
        return '%.2f' % float(value)


class NormallyDistributedThinkTimeFormatter(AbstractThinkTimeFormatter):
    """Gaussian think time: n(<mean> <deviation>)"""

    think_time_type = NormallyDistributedThinkTime

    def get_default_string(self):
        return self._format(0.0, 0.0)

    def get_think_time_string(self, think_time):
        if think_time is None:
            return self.get_default_string()
        return self._format(think_time.mean, think_time.deviation)

    def _format(self, mean, deviation):
        return f"n({self.format_float(mean)} {self.format_float(deviation)})"


def default_think_time_formatters() -> Dict[Type[ThinkTime], AbstractThinkTimeFormatter]:
    """Build a fresh registry with a formatter for every known think time variant"""
    formatters = [NormallyDistributedThinkTimeFormatter()]
    return {f.think_time_type: f for f in formatters}
