"""Protocol variants, position categories and liquidation math."""
