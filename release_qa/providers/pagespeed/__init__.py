"""PageSpeed Insights client and the performance provider."""
