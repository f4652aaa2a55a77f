"""ShopClock command line."""
