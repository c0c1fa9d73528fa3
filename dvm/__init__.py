"""dvm - declarative editor and shell configuration resources."""

__version__ = "0.1.0"
