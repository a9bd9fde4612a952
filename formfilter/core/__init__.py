"""Core components for formfilter.

This package contains the override store, the rule compiler, the engine
contract, the configuration manager and the form filter that ties them
together.
"""
