"""GreenKeep command-line interface."""
