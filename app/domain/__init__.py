"""Domain layer for the plot inventory backend.

This package holds the plot accounting rules (plot-number parsing, report
paging, result types). It is intentionally framework-agnostic: domain logic
should be testable without Flask.
"""
