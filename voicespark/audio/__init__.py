"""Audio input and output devices."""
