"""
DERIVE Behind-the-Meter Optimizer
=================================

Cost-minimizing dispatch and sizing of customer-sited resources under
retail electricity tariffs:
- Solar PV (behind-the-meter use and net-metered export)
- Battery energy storage
- Shiftable and sheddable demand

Architecture:
- tariffs/: tariff schema, holiday calendar, rate profile compiler
- resources/: asset input specs and profile resampling
- config/: scenario record and validating input factory
- simulation/: window partitioning, rolling orchestration, sensitivity sweeps
- optimization/: Pyomo model builder, solver backends, results
- postprocess/: electricity bill and investment cost tables
"""

__version__ = "1.0.0"
