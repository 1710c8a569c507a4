"""
Load Layer - Data Persistence

This layer handles all output operations.
- Assessment submission back to the patients API
- Local file storage (Parquet, JSON)
- No business logic, just I/O operations
"""
