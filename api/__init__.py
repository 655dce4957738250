"""HTTP surface for perft diff sessions."""
