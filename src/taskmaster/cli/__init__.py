"""task-master command line interface."""
