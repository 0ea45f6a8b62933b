"""flowdag command line interface."""
