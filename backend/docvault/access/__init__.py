"""Access control and hierarchy integrity for documents."""
