"""Re-check purchases against the retailer's current price within the watch window."""
