"""Feature modules for neo-quota."""
