"""Token lifecycle and out-of-band action services behind the HTTP layer."""
