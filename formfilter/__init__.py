"""formfilter: declarative form validation rules.

This package builds the validation configuration of a form from its field
list plus incrementally registered overrides (optional fields, patterns,
length bounds, custom messages) and binds it to a form through a pluggable
validation engine.
"""

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = ["__version__", "__license__"]
