"""Business-rule validation run at confirm time against current herd/paddock state."""
