"""Utility modules for formfilter.

This package contains the element tree that engines bind forms in and the
loader for form definition files.
"""
