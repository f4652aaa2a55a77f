"""ShopClock HTTP API."""
