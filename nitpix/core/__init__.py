"""Core functionality for Nitpix: queue storage, events and the dispatch loop."""
