"""
Conformance stages and the runner that sequences them.

    extracts.py     CSV extracts -> RawExtracts
    orderings.py    etl / elt strategies
    dimensions.py   customer, product, calendar builders
    facts.py        sale resolution and quarantine
    runner.py       Pipeline, PipelineResult, RunOutput
    reconcile.py    ReconciliationChecker
"""
