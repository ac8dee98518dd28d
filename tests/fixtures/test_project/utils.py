"""Utility functions for the test project."""

def helper_function(value):
    """A simple helper function."""
    return value * 2

def another_helper():
    """Another helper function."""
    pass

class UtilityClass:
    """A utility class."""
    
    def process(self, data):
        """Process some data."""
        return data.upper()
