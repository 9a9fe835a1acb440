"""Domain layer: offer model, codec, ports and the synchronization core."""
