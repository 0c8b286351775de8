"""Cache benchmarks (pytest-benchmark).

Run with::

    pytest tests/benchmarks/ -v --benchmark-sort=median

or as plain functional tests::

    pytest tests/benchmarks/ --benchmark-disable
"""
