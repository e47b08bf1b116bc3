"""Remote file store over a private binary TCP protocol."""
