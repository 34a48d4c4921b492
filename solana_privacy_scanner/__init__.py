"""
Solana Privacy Scanner: deterministic privacy-risk analysis for Solana accounts.

Collects public on-chain data for a wallet, transaction, or program,
normalizes it into a read-only scan context, runs a registry of rule-based
heuristics over it, and aggregates their findings into a privacy report.
Modular architecture with clear separation between collection (solana_listener),
normalization, heuristics, report generation, CLI, and API server.
"""

__version__ = "0.7.1"
