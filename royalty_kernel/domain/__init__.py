"""
Royalty kernel domain layer: pure values, calculator and workflow
definitions.  Nothing in this package performs I/O.
"""
