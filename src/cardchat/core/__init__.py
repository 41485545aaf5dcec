"""
Core Application Layer - Configuration and Agent Setup
======================================================

Modules:
    constants: Configuration values and Pydantic settings validation
    prompts: System instructions for the chat agent
    agent: Agent construction with the registered tools
"""
