"""Request handling backend for used-vehicle purchase requests."""
