"""Clinical event model and normalisation.

Validated input events, Spanish-locale display formatting, and the
normaliser that annotates a consultation's event log.
"""
