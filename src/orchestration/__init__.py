"""
Orchestration Layer - Workflow Coordination

This layer coordinates the entire pipeline workflow.
- Pure workflow coordination
- No business logic
- Composes extract, transform, and load operations
- Decides the exit code of a run
"""
