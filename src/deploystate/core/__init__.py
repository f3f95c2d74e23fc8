"""Core subsystems: checkpoint persistence, workspace layout, configuration and logging."""
