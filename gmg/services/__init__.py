"""Services backing the gmg commands."""
