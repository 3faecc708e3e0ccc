"""Wire-payload normalization used by the models and endpoint parsers."""
