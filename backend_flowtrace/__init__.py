"""
Backend FlowTrace — transaction flow analysis for Solana wallets.

Takes a bounded list of transactions for a target address and derives an
explainable risk picture: interaction graph, funding sources, activity
patterns, a consolidated risk score, and critical paths for human review.
Modular architecture with clear separation between ingestion, the pure
analysis engine, default collaborators, and the API server.
"""

__version__ = "0.1.0"
