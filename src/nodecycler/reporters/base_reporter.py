# src/nodecycler/reporters/base_reporter.py
"""
Defines the abstract base class for all reporters.
"""

from abc import ABC, abstractmethod
from typing import List

from ..models.cycle import CycleReport


class BaseReporter(ABC):
    """
    Abstract Base Class for all reporters.
    """

    @abstractmethod
    def report(self, reports: List[CycleReport]):
        """
        Presents the outcome of a cycling run.
        """
        pass
