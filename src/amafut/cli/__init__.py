"""AmaFut command line interface."""
