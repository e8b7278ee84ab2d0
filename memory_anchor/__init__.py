"""Visitor recognition: face registry, nearest-neighbour matcher and a debounced live scanner."""
