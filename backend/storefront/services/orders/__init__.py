"""Order placement, inventory reservation and lifecycle management."""
