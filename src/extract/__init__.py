"""
Extract Layer - Pure I/O to the Patients API

This layer handles all patient data fetching with no business logic.
- No imports from transform or load layers
- Returns raw patient records
- Handles API rate limiting, retries, error handling and pagination
"""
