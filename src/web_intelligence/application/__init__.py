"""
Application Layer - Use cases

Contains:
- search: strategy selection, aggregation engine, normalization, ranking
- conversation: retrieval-strategy classification and streamed dispatch
"""
