"""
Compliance Kernel

Transaction compliance validation for trade in controlled substances:
- Customer eligibility gating
- Licence coverage resolution
- Quantity / frequency / value thresholds
- Cross-border permit checks
- Override approval workflow
- Retroactive licence-correction impact analysis
"""

__version__ = "0.1.0"
