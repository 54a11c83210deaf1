from .console_reporter import ConsoleReporter

__all__ = ["ConsoleReporter"]
