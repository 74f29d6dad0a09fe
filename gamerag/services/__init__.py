"""Agent orchestration, config loading and the agent registry."""
