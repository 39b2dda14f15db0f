"""Console entry points for refindex."""
