"""
dimspine: conform raw sales extracts into a star schema.

Two orderings of the same conformance rules (normalize-then-load and
load-then-normalize) publish side by side and are reconciled against each
other.
"""

__version__ = "0.1.0"
