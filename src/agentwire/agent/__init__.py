"""Agent loop, model interface and tool execution."""
