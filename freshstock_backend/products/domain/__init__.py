"""
Pure inventory domain: immutable values and side-effect-free rules.

Nothing in this package touches the database; stores translate between
these values and persistence.
"""
