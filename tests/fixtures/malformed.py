"""Module with intentional syntax errors for testing error handling."""


def broken_function(
    # Missing closing parenthesis and colon
    return "This won't parse"


class BrokenClass
    # Missing colon
    def method(self):
        pass
