"""Services layer for FeedSieve.

Services implement business logic and orchestrate data operations.
Organized by feature:
- rules: Filter rules, title parsers, previews and reparse sweeps
"""
