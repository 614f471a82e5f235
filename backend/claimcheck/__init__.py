"""
claimcheck — claim-by-claim fact verification service.

Text goes in, every factual claim comes back with a verdict, a 0-100
confidence score and the trust-tiered sources behind it.
"""

__version__ = "0.1.0"
