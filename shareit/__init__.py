"""ShareIt: peer-to-peer item rental backend."""
