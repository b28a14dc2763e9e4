# sheetqueue/core/reporter/__init__.py
"""
Periodic queue load reporting.

Example usage:
    from sheetqueue.core.reporter import PeriodicReporter

    reporter = PeriodicReporter.for_registry(registry)
    reporter.start()
    ...
    await reporter.stop()
"""

from sheetqueue.core.reporter.service import PeriodicReporter

__all__ = ['PeriodicReporter']
