"""Core primitives: query constructors, session store and context builder."""
