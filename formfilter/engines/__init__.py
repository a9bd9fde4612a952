"""Validation-and-binding engines for formfilter.

Every module in this package is scanned by
`formfilter.core.form_filter.discover_engines`; each class inheriting from
`formfilter.core.base_engine.BaseEngine` becomes available by its `name`.
"""
from .memory import MemoryEngine, MemoryValidator
